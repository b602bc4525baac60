"""
Axis domain models.

Fixed binning of the pair histograms. Bin edges are computed once per
template and shared by every histogram built from it.
"""

import math
from dataclasses import dataclass, field

import numpy as np


@dataclass(frozen=True)
class AxisSpec:
    """A uniformly binned axis over ``[lower, upper)``."""

    name: str
    unit: str
    n_bins: int
    lower: float
    upper: float

    def __post_init__(self):
        """Validate axis specification."""
        if self.n_bins <= 0:
            raise ValueError(f"n_bins must be positive, got {self.n_bins}")
        if not self.upper > self.lower:
            raise ValueError(
                f"upper ({self.upper}) must be greater than lower ({self.lower}) for axis {self.name}"
            )

    @property
    def title(self) -> str:
        """Axis title with units, e.g. ``p_{T} (GeV/c)``."""
        if not self.unit:
            return self.name
        return f"{self.name} ({self.unit})"

    @property
    def bin_width(self) -> float:
        return (self.upper - self.lower) / self.n_bins


@dataclass(frozen=True)
class AxesTemplate:
    """
    Ordered set of axes shared by all histograms of a store.

    Two templates are compatible when their axes are equal; edges follow
    from the axes, so they never need comparing separately.
    """

    axes: tuple[AxisSpec, ...]
    edges: tuple[np.ndarray, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if len(self.axes) == 0:
            raise ValueError("axes cannot be empty")
        edges = []
        for axis in self.axes:
            axis_edges = np.array(
                [axis.lower + ibin * (axis.upper - axis.lower) / axis.n_bins for ibin in range(axis.n_bins + 1)],
                dtype=np.float64,
            )
            axis_edges.setflags(write=False)
            edges.append(axis_edges)
        object.__setattr__(self, "edges", tuple(edges))

    @property
    def ndim(self) -> int:
        return len(self.axes)

    @property
    def shape(self) -> tuple[int, ...]:
        return tuple(axis.n_bins for axis in self.axes)

    def axis_index(self, name: str) -> int:
        """Index of the axis called ``name``."""
        for index, axis in enumerate(self.axes):
            if axis.name == name:
                return index
        raise KeyError(f"No axis named {name!r}")


# Axis indices of the pair histogram
AXIS_PT = 0
AXIS_Y = 1
AXIS_PHI = 2
AXIS_INV_MASS = 3
AXIS_CENTRALITY = 4
AXIS_TRACKLETS = 5


def make_pair_axes(centrality_estimator: str = "V0M") -> AxesTemplate:
    """Build the six axes used for every pair histogram."""
    return AxesTemplate(axes=(
        AxisSpec("p_{T}", "GeV/c", 100, 0.0, 100.0),
        AxisSpec("y", "", 25, -4.5, -2.0),
        AxisSpec("#phi", "rad", 36, 0.0, 2.0 * math.pi),
        AxisSpec("M_{#mu#mu}", "GeV/c^{2}", 750, 0.0, 15.0),
        AxisSpec(f"Centrality ({centrality_estimator})", "", 10, 0.0, 100.0),
        AxisSpec("SPD tracklets", "", 150, -0.5, 150.0 - 0.5),
    ))
