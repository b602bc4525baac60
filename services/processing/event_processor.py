"""
EventProcessor - Fills a mergeable store from events.

Per event: event selection, then for each applicable processing pass
particle selection, pairing, classification, tracklet counting and
dispatch of one histogram fill per trigger label and cut level.
"""

import itertools
import logging
from typing import Optional, Sequence

from domain.config import AnalysisConfig
from domain.events import Event, SelectedEntity
from domain.passes import DEFAULT_PASSES, ProcessingPass
from domain.paths import StorePath
from services.calculations.physics_calcs import calc_pair_sample
from services.calculations.thresholds import count_tracklets, describe_thresholds, level_labels, normalize_thresholds
from services.classification.ancestry import AncestryResolver
from services.classification.pair_classifier import PairClassifier, PairTypeFilter
from services.histograms.factory import ObjectKind
from services.histograms.store import MergeableStore
from services.processing.collector import StatisticsCollector
from services.processing.event_states import EventState, is_valid_event_transition
from services.selection.muon_selection import SelectionAuthority


class EventProcessor:
    """
    Processes events one at a time into a store it does not own.

    The store is passed in by the worker and handed back untouched in
    identity; all mutation happens through ``MergeableStore.resolve``.
    """

    def __init__(
        self,
        store: MergeableStore,
        selection: SelectionAuthority,
        resolver: AncestryResolver,
        analysis_config: AnalysisConfig,
        passes: Sequence[ProcessingPass] = DEFAULT_PASSES,
        collector: Optional[StatisticsCollector] = None
    ):
        self.store = store
        self.selection = selection
        self.resolver = resolver
        self.config = analysis_config
        self.passes = tuple(passes)
        self.collector = collector or StatisticsCollector()

        self.thresholds = normalize_thresholds(analysis_config.tracklet_dist_cuts)
        self.level_labels = level_labels(self.thresholds)
        self.classifier = PairClassifier(resolver, PairTypeFilter(analysis_config.selected_pair_types))

        self.state = EventState.IDLE
        self._current_run: Optional[int] = None
        self.logger = logging.getLogger(self.__class__.__name__)

    def log_configuration(self):
        self.logger.info(f"The task will store the results for {self.classifier.pair_filter.describe()}")
        self.logger.info(f"Cuts on tracklet distance: {describe_thresholds(self.thresholds)}")

    # ------------------------------------------------------------------
    # State handling
    # ------------------------------------------------------------------

    def _transition(self, new_state: EventState):
        if not is_valid_event_transition(self.state, new_state):
            raise RuntimeError(f"Invalid event transition: {self.state} -> {new_state}")
        self.state = new_state

    def reset(self):
        """Return to IDLE after an event was interrupted by an error."""
        self.state = EventState.IDLE

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def process_event(self, event: Event) -> bool:
        """
        Process one event.

        The processor is back in IDLE when this returns or raises.

        Returns:
            True if the event was selected
        """
        self._transition(EventState.PER_EVENT_SELECTION)
        try:
            return self._process_selected_event(event)
        finally:
            if self.state != EventState.IDLE:
                self.reset()

    def _process_selected_event(self, event: Event) -> bool:
        self.collector.events_seen += 1

        try:
            if event.run_number != self._current_run:
                self.selection.notify_run(event.run_number)
                self._current_run = event.run_number
            is_selected = self.selection.is_event_selected(event)
            trigger_classes = self.selection.selected_trigger_classes(event) if is_selected else []
        except Exception as e:
            self.logger.warning(f"Event selection failed in run {event.run_number}: {e}")
            is_selected = False

        if not is_selected:
            self.collector.events_rejected += 1
            self._transition(EventState.IDLE)
            return False

        self.collector.events_selected += 1
        for processing_pass in self.passes:
            if processing_pass.is_applicable(event.has_truth):
                self._process_pass(event, processing_pass, trigger_classes)

        self._transition(EventState.IDLE)
        return True

    def _process_pass(self, event: Event, processing_pass: ProcessingPass, trigger_classes: list[str]):
        if processing_pass.fixed_trigger_label is not None:
            trigger_labels = [processing_pass.fixed_trigger_label]
        else:
            trigger_labels = trigger_classes

        for trigger in trigger_labels:
            counter = self.store.resolve(StorePath.of(trigger), ObjectKind.EVENT_COUNTER)
            if counter is not None:
                counter.fill(1.)

        try:
            entities = self.selection.select_entities(
                event, processing_pass, self.resolver, on_error=self.collector.record_entity_error
            )
        except Exception as e:
            self.logger.warning(f"Particle selection failed in {processing_pass.name} pass: {e}")
            self.collector.record_entity_error(-1, e)
            return
        if len(entities) < 2:
            return

        self._transition(EventState.PAIR_ENUMERATION)
        for entity1, entity2 in itertools.combinations(entities, 2):
            self._process_pair(event, processing_pass, trigger_labels, entity1, entity2)
        self._transition(EventState.PER_EVENT_SELECTION)

    def _process_pair(
        self,
        event: Event,
        processing_pass: ProcessingPass,
        trigger_labels: list[str],
        entity1: SelectedEntity,
        entity2: SelectedEntity
    ):
        self.collector.pairs_formed += 1

        try:
            labels = self.classifier.classify(entity1, entity2, event.truth)
            StorePath.of(labels.pair_type)  # Label must be usable as a path segment
        except Exception as e:
            self.logger.warning(f"Skipping pair ({entity1.index}, {entity2.index}): {e}")
            self.collector.skipped_pairs += 1
            return

        if not self.classifier.is_selected(labels):
            self.collector.pairs_dropped_by_type += 1
            return

        sample = calc_pair_sample(entity1.particle, entity2.particle)
        counts = count_tracklets(event.tracklets, sample.phi, self.thresholds)

        self._transition(EventState.DISPATCH)
        for trigger in trigger_labels:
            if processing_pass.apply_trigger_cuts:
                try:
                    passes_cut = self.selection.pair_passes_trigger_cut(entity1, entity2, trigger)
                except Exception as e:
                    self.logger.warning(f"Skipping pair ({entity1.index}, {entity2.index}) for {trigger}: {e}")
                    self.collector.skipped_pairs += 1
                    continue
                if not passes_cut:
                    self.collector.pairs_dropped_by_trigger_cut += 1
                    continue
            for level, n_tracklets in zip(self.level_labels, counts):
                path = StorePath.of(trigger, level, labels.pair_type, labels.charge)
                histogram = self.store.resolve(path, ObjectKind.PAIR_HISTOGRAM)
                if histogram is None:
                    continue
                if histogram.fill(sample.coordinates(event.centrality, n_tracklets)):
                    self.collector.fills += 1
                else:
                    self.collector.out_of_range_samples += 1
        self._transition(EventState.PAIR_ENUMERATION)
