"""
Scalar counter stored next to the histograms (e.g. number of events).
"""


class ScalarCounter:
    """Weighted counter with the same merge rule as a histogram: sum."""

    def __init__(self, value: float = 0.0, entries: int = 0):
        self.value = float(value)
        self.entries = entries

    def fill(self, weight: float = 1.0):
        self.value += weight
        self.entries += 1

    def merge(self, other: 'ScalarCounter') -> 'ScalarCounter':
        """Add ``other`` into this counter and return it."""
        self.value += other.value
        self.entries += other.entries
        return self

    def is_empty(self) -> bool:
        return self.entries == 0

    def __eq__(self, other) -> bool:
        if not isinstance(other, ScalarCounter):
            return NotImplemented
        return self.value == other.value and self.entries == other.entries

    def __repr__(self) -> str:
        return f"ScalarCounter(value={self.value}, entries={self.entries})"
