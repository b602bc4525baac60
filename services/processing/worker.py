"""
Workers - Each one fills its own store from a disjoint set of files.

Workers share nothing while processing. ``ParallelProcessor`` runs them in
separate processes and yields their results as they complete; the results
are then folded by the merge stage.
"""

import logging
from concurrent.futures import ProcessPoolExecutor, as_completed
from contextlib import nullcontext
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

from tqdm import tqdm

from domain.axes import make_pair_axes
from domain.config import PipelineConfig
from domain.events import Event
from domain.statistics import ProcessingStatistics
from services.classification.ancestry import AncestryResolver, TruthAncestryResolver
from services.histograms.factory import ObjectFactory
from services.histograms.store import MergeableStore
from services.parsing.event_reader import EventReader
from services.processing.collector import StatisticsCollector
from services.processing.event_processor import EventProcessor
from services.selection.muon_selection import MuonSelection, SelectionAuthority
from utils.batching import get_batch_slice


@dataclass
class WorkerResult:
    """Output of one worker: its store, handed over, and its diagnostics."""

    worker_index: int
    store: MergeableStore
    statistics: ProcessingStatistics
    failed_files: list[tuple[str, str]] = field(default_factory=list)


def create_store(config: PipelineConfig, name: str = "dimuon") -> MergeableStore:
    """Fresh store whose histograms use the pair axes."""
    template = make_pair_axes(config.analysis.centrality_estimator)
    return MergeableStore(name=name, factory=ObjectFactory(template))


class Worker:
    """
    One shared-nothing worker.

    A worker is used for a single ``run``; the store it returns is no
    longer touched by it.
    """

    def __init__(
        self,
        config: PipelineConfig,
        worker_index: int = 1,
        selection: Optional[SelectionAuthority] = None,
        resolver: Optional[AncestryResolver] = None,
        reader: Optional[EventReader] = None
    ):
        self.config = config
        self.worker_index = worker_index
        self.selection = selection or MuonSelection(config.selection)
        self.resolver = resolver or TruthAncestryResolver()
        self.reader = reader or EventReader(tree_name=config.processing.tree_name)
        self.collector = StatisticsCollector()
        self.store = create_store(config, name=f"worker_{worker_index}")
        self.processor = EventProcessor(
            store=self.store,
            selection=self.selection,
            resolver=self.resolver,
            analysis_config=config.analysis,
            collector=self.collector,
        )
        self._used = False
        self.logger = logging.getLogger(self.__class__.__name__)

    def process_events(self, events: Iterable[Event]) -> int:
        """Process in-memory events in order; returns how many were selected."""
        return sum(1 for event in events if self.processor.process_event(event))

    def run(self, file_paths: Iterable[str] = (), events: Iterable[Event] = ()) -> WorkerResult:
        """
        Process files (and/or in-memory events) and hand over the store.

        Unreadable files are logged and counted, never fatal.
        """
        if self._used:
            raise RuntimeError(f"Worker {self.worker_index} has already run")
        self._used = True
        self.processor.log_configuration()

        for file_path in file_paths:
            try:
                selected = self.process_events(self.reader.read_file(file_path))
                self.collector.record_file_success()
                self.logger.info(f"Worker {self.worker_index}: {file_path} done ({selected} events selected)")
            except Exception as e:
                self.logger.warning(f"Worker {self.worker_index}: error processing file {file_path}: {e}")
                self.collector.record_file_failure(file_path, e)
                self.processor.reset()

        self.process_events(events)
        self.collector.update_memory()

        store, self.store = self.store, None
        return WorkerResult(
            worker_index=self.worker_index,
            store=store,
            statistics=self.collector.snapshot(),
            failed_files=list(self.collector.failed_files),
        )


def run_worker(config: PipelineConfig, worker_index: int, file_paths: list[str]) -> WorkerResult:
    """Process entry point of a worker."""
    return Worker(config, worker_index).run(file_paths)


class ParallelProcessor:
    """
    Runs one worker per slice of the input files in a process pool.
    """

    def __init__(self, config: PipelineConfig):
        if config.processing.workers <= 0:
            raise ValueError(f"workers must be positive, got {config.processing.workers}")
        self.config = config
        self.max_workers = config.processing.workers
        self.show_progress = config.processing.show_progress_bar
        self.logger = logging.getLogger(self.__class__.__name__)

    def split_files(self, file_paths: list[str]) -> list[list[str]]:
        """Disjoint, non-empty file slices, at most one per worker."""
        n_slices = min(self.max_workers, len(file_paths))
        slices = [get_batch_slice(file_paths, index, n_slices) for index in range(1, n_slices + 1)]
        return [s for s in slices if s]

    def process_files(self, file_paths: list[str]) -> Iterator[WorkerResult]:
        """
        Yield worker results as workers complete.

        Results arrive in completion order; the merge stage does not
        depend on it.
        """
        slices = self.split_files(list(file_paths))
        if not slices:
            self.logger.warning("No input files to process")
            return

        if len(slices) == 1:
            yield run_worker(self.config, 1, slices[0])
            return

        with ProcessPoolExecutor(max_workers=len(slices)) as executor:
            futures = {
                executor.submit(run_worker, self.config, index, file_slice): index
                for index, file_slice in enumerate(slices, start=1)
            }

            progress_bar = self._create_progress_bar(len(futures))
            with progress_bar as pbar:
                for future in as_completed(futures):
                    yield future.result()
                    if self.show_progress:
                        pbar.update(1)

    def _create_progress_bar(self, total: int):
        if self.show_progress:
            return tqdm(
                total=total,
                desc="Processing workers",
                unit="worker",
                dynamic_ncols=True,
                mininterval=1
            )
        return nullcontext()
