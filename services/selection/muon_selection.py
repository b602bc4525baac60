"""
Event and muon selection.

``SelectionAuthority`` is the interface the event processing consumes;
``MuonSelection`` is the default cut-based implementation driven by
``SelectionConfig``.
"""
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence

from domain.config import SelectionConfig
from domain.events import Event, SelectedEntity
from domain.passes import ProcessingPass
from services.calculations import consts
from services.classification.ancestry import AncestryResolver


class SelectionAuthority(ABC):
    """Accept/reject decisions for events, particles and pairs."""

    def notify_run(self, run_number: int):
        """Load run-dependent parameters before the first event of a run."""

    @abstractmethod
    def is_event_selected(self, event: Event) -> bool:
        """Whether the event is processed at all."""

    @abstractmethod
    def selected_trigger_classes(self, event: Event) -> list[str]:
        """Fired trigger classes the event is counted under."""

    @abstractmethod
    def select_entities(
        self,
        event: Event,
        processing_pass: ProcessingPass,
        resolver: AncestryResolver,
        on_error: Optional[Callable[[int, Exception], None]] = None
    ) -> list[SelectedEntity]:
        """
        Particles of ``event`` accepted for ``processing_pass``.

        Particles whose provenance cannot be resolved are skipped and
        reported through ``on_error(index, exception)``.
        """

    def pair_passes_trigger_cut(self, entity1: SelectedEntity, entity2: SelectedEntity, trigger_class: str) -> bool:
        """Whether a pair is compatible with the pt threshold of a trigger class."""
        return True


def is_truth_muon_selected(particle) -> bool:
    """Final-state generated muon inside the spectrometer acceptance."""
    eta_min, eta_max = consts.TRUTH_ETA_RANGE
    return (
        abs(particle.pdg_code) == consts.MUON_PDG
        and particle.status_code < consts.TRUTH_MAX_STATUS_CODE
        and eta_min < particle.eta < eta_max
    )


class MuonSelection(SelectionAuthority):
    """
    Default cut-based selection.

    Events need one of the configured trigger classes and a centrality in
    range. Reconstructed muons need eta in range and a minimum pt; generated
    muons follow ``is_truth_muon_selected``. Pairs must have both muons
    above the pt level of the trigger class, possibly overridden per run.
    """

    def __init__(self, config: SelectionConfig):
        self.config = config
        self._pt_cut_levels = dict(config.trigger_pt_cut_levels)
        self._run_number = None
        self.logger = logging.getLogger(self.__class__.__name__)

    def notify_run(self, run_number: int):
        if run_number == self._run_number:
            return
        self._run_number = run_number
        self._pt_cut_levels = dict(self.config.trigger_pt_cut_levels)
        self._pt_cut_levels.update(self.config.run_pt_cut_levels.get(run_number, {}))
        self.logger.info(f"Run {run_number}: trigger pt cut levels {self._pt_cut_levels}")

    def selected_trigger_classes(self, event: Event) -> list[str]:
        accepted = self.config.trigger_classes
        fired = [trig for trig in event.trigger_classes if not accepted or trig in accepted]
        # Each label once, keeping the event's order
        return list(dict.fromkeys(fired))

    def is_event_selected(self, event: Event) -> bool:
        cent_min, cent_max = self.config.centrality_range
        if not cent_min <= event.centrality <= cent_max:
            return False
        return len(self.selected_trigger_classes(event)) > 0

    def is_track_selected(self, track) -> bool:
        eta_min, eta_max = self.config.track_eta_range
        return eta_min < track.eta < eta_max and track.pt >= self.config.track_min_pt

    def select_entities(self, event, processing_pass, resolver, on_error=None) -> list[SelectedEntity]:
        simulation = event.truth
        if processing_pass.uses_truth:
            candidates: Sequence = event.truth or ()
            is_selected = is_truth_muon_selected
        else:
            candidates = event.tracks
            is_selected = self.is_track_selected

        selected = []
        for index, particle in enumerate(candidates):
            if not is_selected(particle):
                continue
            try:
                entity = SelectedEntity(
                    particle=particle,
                    particle_type=resolver.particle_type(particle, simulation),
                    index=index,
                    ancestor=resolver.ancestor(particle, simulation),
                    history=resolver.history(particle, simulation),
                )
            except Exception as e:
                self.logger.warning(f"Skipping particle {index} in {processing_pass.name} pass: {e}")
                if on_error:
                    on_error(index, e)
                continue
            selected.append(entity)
        return selected

    def pt_cut_level(self, trigger_class: str) -> float:
        return self._pt_cut_levels.get(trigger_class, 0.0)

    def pair_passes_trigger_cut(self, entity1, entity2, trigger_class) -> bool:
        level = self.pt_cut_level(trigger_class)
        return entity1.particle.pt >= level and entity2.particle.pt >= level
