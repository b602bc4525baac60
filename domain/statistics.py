"""
Statistics-related domain models.

Immutable snapshots of worker-level diagnostics.
"""

from dataclasses import dataclass, fields


@dataclass(frozen=True)
class ProcessingStatistics:
    """
    Diagnostics collected by one worker, or by several once combined.

    None of these numbers feed back into the histograms.
    """

    # Events
    events_seen: int = 0
    events_selected: int = 0
    events_rejected: int = 0

    # Entities and pairs
    skipped_entities: int = 0
    pairs_formed: int = 0
    pairs_dropped_by_type: int = 0
    pairs_dropped_by_trigger_cut: int = 0
    skipped_pairs: int = 0

    # Histogram filling
    fills: int = 0
    out_of_range_samples: int = 0

    # Files
    files_processed: int = 0
    files_failed: int = 0

    # Memory
    max_memory_mb: float = 0.0

    def __post_init__(self):
        """Validate statistics."""
        for f in fields(self):
            value = getattr(self, f.name)
            if value < 0:
                raise ValueError(f"{f.name} must be non-negative, got {value}")
        if self.events_selected + self.events_rejected != self.events_seen:
            raise ValueError(
                f"events_selected ({self.events_selected}) + events_rejected ({self.events_rejected}) "
                f"must equal events_seen ({self.events_seen})"
            )

    @property
    def selection_rate(self) -> float:
        """Fraction of seen events that were selected, as percentage."""
        if self.events_seen == 0:
            return 0.0
        return (self.events_selected / self.events_seen) * 100

    def combine(self, other: 'ProcessingStatistics') -> 'ProcessingStatistics':
        """Sum counts of two workers; memory keeps the maximum."""
        values = {}
        for f in fields(self):
            if f.name == "max_memory_mb":
                values[f.name] = max(self.max_memory_mb, other.max_memory_mb)
            else:
                values[f.name] = getattr(self, f.name) + getattr(other, f.name)
        return ProcessingStatistics(**values)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {f.name: getattr(self, f.name) for f in fields(self)}
        result["selection_rate"] = f"{self.selection_rate:.1f}%"
        result["max_memory_mb"] = f"{self.max_memory_mb:.1f}"
        return result
