"""
Sparse N-dimensional histogram.

Only filled bins are stored, keyed by their bin-index tuple. This keeps the
six-axis pair histograms (about 10^10 bins when dense) small enough to be
held per path and shipped between processes.
"""
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import numpy as np

from domain.axes import AxesTemplate, AxisSpec
from services.histograms.errors import AxisMismatchError


@dataclass
class Projection:
    """One-dimensional marginal of a sparse histogram."""

    axis: AxisSpec
    counts: np.ndarray
    edges: np.ndarray
    entries: int

    @property
    def total(self) -> float:
        return float(self.counts.sum())

    def to_numpy(self) -> tuple[np.ndarray, np.ndarray]:
        """``(counts, edges)`` tuple, the form uproot writes as a TH1."""
        return self.counts, self.edges


class SparseHistogram:
    """
    Binned accumulator over the fixed axes of an ``AxesTemplate``.

    Samples with any coordinate outside ``[lower, upper)`` are dropped;
    there are no underflow or overflow bins.
    """

    def __init__(self, template: AxesTemplate, name: str = ""):
        self.template = template
        self.name = name
        self.bins: dict[tuple[int, ...], float] = {}
        self.entries = 0

    # ------------------------------------------------------------------
    # Filling
    # ------------------------------------------------------------------

    def find_bin(self, sample: Sequence[float]) -> Optional[tuple[int, ...]]:
        """Bin-index tuple of ``sample``, or None when it is out of range."""
        if len(sample) != self.template.ndim:
            raise ValueError(f"Expected {self.template.ndim} coordinates, got {len(sample)}")
        indices = []
        for value, edges in zip(sample, self.template.edges):
            index = int(np.searchsorted(edges, value, side="right")) - 1
            if not np.isfinite(value) or index < 0 or index >= len(edges) - 1:
                return None
            indices.append(index)
        return tuple(indices)

    def fill(self, sample: Sequence[float], weight: float = 1.0) -> bool:
        """
        Add ``weight`` to the bin of ``sample``.

        Returns:
            False if the sample was out of range and dropped
        """
        key = self.find_bin(sample)
        if key is None:
            return False
        self.bins[key] = self.bins.get(key, 0.0) + weight
        self.entries += 1
        return True

    def fill_many(self, samples: np.ndarray, weights: Optional[np.ndarray] = None) -> int:
        """
        Vectorised fill of an ``(n, ndim)`` array of samples.

        Returns:
            Number of samples accepted
        """
        samples = np.atleast_2d(np.asarray(samples, dtype=np.float64))
        if samples.shape[1] != self.template.ndim:
            raise ValueError(f"Expected {self.template.ndim} columns, got {samples.shape[1]}")
        if weights is None:
            weights = np.ones(len(samples))

        indices = np.empty(samples.shape, dtype=np.int64)
        in_range = np.isfinite(samples).all(axis=1)
        for idim, edges in enumerate(self.template.edges):
            column = np.searchsorted(edges, samples[:, idim], side="right") - 1
            in_range &= (column >= 0) & (column < len(edges) - 1)
            indices[:, idim] = column

        for key, weight in zip(map(tuple, indices[in_range].tolist()), weights[in_range]):
            self.bins[key] = self.bins.get(key, 0.0) + float(weight)

        accepted = int(in_range.sum())
        self.entries += accepted
        return accepted

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def bin_content(self, bins: Sequence[int]) -> float:
        return self.bins.get(tuple(bins), 0.0)

    @property
    def sum_of_weights(self) -> float:
        return float(sum(self.bins.values()))

    @property
    def n_filled_bins(self) -> int:
        return len(self.bins)

    def is_empty(self) -> bool:
        return self.entries == 0 and not self.bins

    def project(self, axis: int, ranges: Optional[dict[int, tuple[float, float]]] = None) -> Optional[Projection]:
        """
        Marginal distribution along ``axis``.

        Args:
            axis: Index of the kept axis
            ranges: Optional value ranges restricting the other axes,
                as ``{axis_index: (low, high)}``; the bins containing
                ``low`` and ``high`` are included

        Returns:
            Projection, or None if nothing falls inside it
        """
        if not 0 <= axis < self.template.ndim:
            raise IndexError(f"Axis {axis} out of range for {self.template.ndim} dimensions")

        bin_ranges = {}
        for range_axis, (low, high) in (ranges or {}).items():
            edges = self.template.edges[range_axis]
            first = max(int(np.searchsorted(edges, low, side="right")) - 1, 0)
            last = min(int(np.searchsorted(edges, high, side="right")) - 1, len(edges) - 2)
            bin_ranges[range_axis] = (first, last)

        counts = np.zeros(self.template.shape[axis], dtype=np.float64)
        for key, weight in self.bins.items():
            if any(not first <= key[i] <= last for i, (first, last) in bin_ranges.items()):
                continue
            counts[key[axis]] += weight

        if not counts.any():
            return None

        # Per-bin entries are not kept, restricted projections use the weight sum
        entries = self.entries if not bin_ranges else int(round(counts.sum()))
        return Projection(
            axis=self.template.axes[axis],
            counts=counts,
            edges=self.template.edges[axis].copy(),
            entries=entries,
        )

    # ------------------------------------------------------------------
    # Merging
    # ------------------------------------------------------------------

    def check_compatible(self, other: 'SparseHistogram'):
        if self.template != other.template:
            raise AxisMismatchError(
                f"Cannot merge histogram {other.name!r} into {self.name!r}: axes differ"
            )

    def merge(self, other: 'SparseHistogram') -> 'SparseHistogram':
        """
        Add the content of ``other`` bin by bin and return this histogram.

        Raises:
            AxisMismatchError: If the two templates differ
        """
        self.check_compatible(other)
        for key, weight in other.bins.items():
            self.bins[key] = self.bins.get(key, 0.0) + weight
        self.entries += other.entries
        return self

    def copy(self) -> 'SparseHistogram':
        clone = SparseHistogram(self.template, self.name)
        clone.bins = dict(self.bins)
        clone.entries = self.entries
        return clone

    def __eq__(self, other) -> bool:
        if not isinstance(other, SparseHistogram):
            return NotImplemented
        return (
            self.template == other.template
            and self.entries == other.entries
            and _nonzero(self.bins) == _nonzero(other.bins)
        )

    def __repr__(self) -> str:
        return (f"SparseHistogram(name={self.name!r}, ndim={self.template.ndim}, "
                f"filled_bins={len(self.bins)}, entries={self.entries})")


def _nonzero(bins: dict) -> dict:
    return {key: weight for key, weight in bins.items() if weight != 0.0}


def merge_all(histograms: Iterable[SparseHistogram]) -> Optional[SparseHistogram]:
    """Sum histograms into a copy of the first one; None for an empty input."""
    result = None
    for histogram in histograms:
        result = histogram.copy() if result is None else result.merge(histogram)
    return result
