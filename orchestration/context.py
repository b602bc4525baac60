"""
Pipeline context.

Immutable context object passed between state handlers.
"""

from dataclasses import dataclass, field, replace
from typing import Optional, Any
from datetime import datetime

from domain.config import PipelineConfig
from domain.statistics import ProcessingStatistics
from services.histograms.store import MergeableStore
from .states import PipelineState


@dataclass(frozen=True)
class PipelineContext:
    """
    Immutable context for pipeline execution.

    Contains all state needed for pipeline execution.
    Each state handler returns a new context with updated fields.
    """

    # Configuration
    config: PipelineConfig

    # Current state
    current_state: PipelineState

    # Execution metadata
    start_time: datetime = field(default_factory=datetime.now)

    # Input files handled by this job (after batch splitting)
    input_files: list[str] = field(default_factory=list)

    # Stores handed over by workers, consumed by the merge stage
    worker_stores: list[MergeableStore] = field(default_factory=list)

    # Single store after merging
    merged_store: Optional[MergeableStore] = None

    # Files written by the output stage
    output_files: list[str] = field(default_factory=list)

    # Statistics
    processing_stats: Optional[ProcessingStatistics] = None
    failed_files: list[tuple[str, str]] = field(default_factory=list)

    # Error tracking
    error_message: Optional[str] = None
    error_details: Optional[dict] = None

    # Custom data (for extension)
    custom_data: dict[str, Any] = field(default_factory=dict)

    def with_state(self, new_state: PipelineState) -> 'PipelineContext':
        """
        Return new context with updated state.

        Args:
            new_state: New pipeline state

        Returns:
            New PipelineContext with updated state
        """
        return replace(self, current_state=new_state)

    def with_input_files(self, files: list[str]) -> 'PipelineContext':
        return replace(self, input_files=list(files))

    def with_worker_stores(self, stores: list[MergeableStore]) -> 'PipelineContext':
        return replace(self, worker_stores=list(stores))

    def with_merged_store(self, store: MergeableStore) -> 'PipelineContext':
        """
        Return new context holding the merged store.

        The worker stores were consumed by the merge and are dropped.
        """
        return replace(self, merged_store=store, worker_stores=[])

    def with_output_files(self, files: list[str]) -> 'PipelineContext':
        return replace(self, output_files=list(files))

    def with_processing_stats(
        self,
        stats: ProcessingStatistics,
        failed_files: Optional[list[tuple[str, str]]] = None
    ) -> 'PipelineContext':
        """
        Return new context with processing statistics.

        Args:
            stats: Combined worker statistics
            failed_files: (path, error) pairs of files that could not be read

        Returns:
            New PipelineContext with statistics
        """
        return replace(self, processing_stats=stats, failed_files=list(failed_files or []))

    def with_error(self, message: str, details: Optional[dict] = None) -> 'PipelineContext':
        """
        Return new context with error information.

        Args:
            message: Error message
            details: Optional error details dict

        Returns:
            New PipelineContext with error information
        """
        return replace(
            self,
            current_state=PipelineState.FAILED,
            error_message=message,
            error_details=details or {}
        )

    def with_custom_data(self, key: str, value: Any) -> 'PipelineContext':
        new_custom = self.custom_data.copy()
        new_custom[key] = value
        return replace(self, custom_data=new_custom)

    @property
    def elapsed_time(self) -> float:
        """Get elapsed time in seconds."""
        return (datetime.now() - self.start_time).total_seconds()

    @property
    def is_terminal(self) -> bool:
        """Check if current state is terminal."""
        return self.current_state.is_terminal()

    @property
    def is_successful(self) -> bool:
        """Check if pipeline completed successfully."""
        return self.current_state == PipelineState.COMPLETED

    @property
    def has_error(self) -> bool:
        """Check if pipeline failed."""
        return self.current_state == PipelineState.FAILED

    def get_summary(self) -> dict:
        """
        Get summary of pipeline execution.

        Returns:
            Dict with execution summary
        """
        return {
            "state": str(self.current_state),
            "elapsed_time_sec": self.elapsed_time,
            "start_time": self.start_time.isoformat(),
            "input_files_count": len(self.input_files),
            "failed_files_count": len(self.failed_files),
            "merged_objects_count": len(self.merged_store) if self.merged_store is not None else 0,
            "output_files": list(self.output_files),
            "has_error": self.has_error,
            "error_message": self.error_message,
            "is_successful": self.is_successful,
        }
