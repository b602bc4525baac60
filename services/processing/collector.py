"""
StatisticsCollector - Accumulates worker diagnostics.

Single responsibility: count what happened while a worker filled its store.
"""

from domain.statistics import ProcessingStatistics
from utils.memory import current_memory_mb


class StatisticsCollector:
    """
    Mutable counterpart of ``ProcessingStatistics``.

    Owned by one worker; not shared between threads.
    """

    def __init__(self):
        self.events_seen = 0
        self.events_selected = 0
        self.events_rejected = 0
        self.skipped_entities = 0
        self.pairs_formed = 0
        self.pairs_dropped_by_type = 0
        self.pairs_dropped_by_trigger_cut = 0
        self.skipped_pairs = 0
        self.fills = 0
        self.out_of_range_samples = 0
        self.files_processed = 0
        self.files_failed = 0
        self.failed_files: list[tuple[str, str]] = []
        self.max_memory_mb = 0.0

    def record_file_success(self):
        self.files_processed += 1
        self.update_memory()

    def record_file_failure(self, file_path: str, error: Exception):
        self.files_failed += 1
        self.failed_files.append((file_path, str(error)))

    def record_entity_error(self, index: int, error: Exception):
        self.skipped_entities += 1

    def update_memory(self):
        self.max_memory_mb = max(self.max_memory_mb, current_memory_mb())

    def snapshot(self) -> ProcessingStatistics:
        """Immutable copy of the current counts."""
        return ProcessingStatistics(
            events_seen=self.events_seen,
            events_selected=self.events_selected,
            events_rejected=self.events_rejected,
            skipped_entities=self.skipped_entities,
            pairs_formed=self.pairs_formed,
            pairs_dropped_by_type=self.pairs_dropped_by_type,
            pairs_dropped_by_trigger_cut=self.pairs_dropped_by_trigger_cut,
            skipped_pairs=self.skipped_pairs,
            fills=self.fills,
            out_of_range_samples=self.out_of_range_samples,
            files_processed=self.files_processed,
            files_failed=self.files_failed,
            max_memory_mb=self.max_memory_mb,
        )
