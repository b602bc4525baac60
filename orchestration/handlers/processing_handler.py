"""
ProcessingHandler - Handles processing state.

Runs the workers over this job's input files.
Supports batch job splitting via batch_job_index / total_batch_jobs.
"""

from functools import reduce

from domain.statistics import ProcessingStatistics
from orchestration.context import PipelineContext
from orchestration.states import PipelineState
from services.processing.worker import ParallelProcessor
from utils.batching import get_batch_slice
from .base import StateHandler


class ProcessingHandler(StateHandler):
    """
    Handler for PROCESSING state.

    Each worker fills its own store; the stores and the combined
    statistics are put on the context for the merge stage.
    """

    def __init__(self, processor: ParallelProcessor):
        super().__init__()
        self.processor = processor

    def _select_input_files(self, context: PipelineContext) -> list[str]:
        config = context.config
        files = list(config.processing.input_files)

        if config.batch_job_index is not None and config.total_batch_jobs is not None:
            self.logger.info(f"Batch mode: job {config.batch_job_index}/{config.total_batch_jobs}")
            files = get_batch_slice(files, config.batch_job_index, config.total_batch_jobs)

        return files

    def handle(self, context: PipelineContext) -> tuple[PipelineContext, PipelineState]:
        self._log_state_entry(context)

        input_files = self._select_input_files(context)
        self.logger.info(f"Processing {len(input_files)} input files with up to {self.processor.max_workers} workers")

        stores = []
        worker_stats = []
        failed_files = []
        for result in self.processor.process_files(input_files):
            self.logger.info(
                f"Worker {result.worker_index} finished: "
                f"{result.statistics.events_selected}/{result.statistics.events_seen} events selected, "
                f"{len(result.store)} objects"
            )
            stores.append(result.store)
            worker_stats.append(result.statistics)
            failed_files.extend(result.failed_files)

        stats = reduce(lambda a, b: a.combine(b), worker_stats, ProcessingStatistics())

        self.logger.info(
            f"Processing complete: {stats.files_processed} files processed, {stats.files_failed} failed, "
            f"{stats.events_selected}/{stats.events_seen} events selected ({stats.selection_rate:.1f}%)"
        )
        for file_path, error in failed_files:
            self.logger.warning(f"Failed file {file_path}: {error}")

        updated_context = (
            context
            .with_input_files(input_files)
            .with_worker_stores(stores)
            .with_processing_stats(stats, failed_files)
        )

        next_state = self._determine_next_state(updated_context)
        self._log_state_exit(context, next_state)
        return updated_context, next_state
