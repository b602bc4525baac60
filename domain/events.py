"""
Event-related domain models.

Immutable data structures representing one event and the objects in it.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from services.calculations.consts import MUON_MASS


@dataclass(frozen=True)
class Track:
    """A reconstructed muon track."""

    pt: float
    eta: float
    phi: float
    charge: int
    mass: float = MUON_MASS
    label: int = -1  # Index of the matching truth particle
    pdg_code: int = 0
    status_code: int = 0


@dataclass(frozen=True)
class TruthParticle:
    """A generator-level particle, linked to its mother by index."""

    index: int
    pdg_code: int
    pt: float
    eta: float
    phi: float
    charge: int
    mass: float = 0.0
    mother: int = -1
    status_code: int = 1

    @property
    def label(self) -> int:
        return self.index


@dataclass(frozen=True)
class Tracklet:
    """One SPD tracklet: angular position and distance to the vertex."""

    phi: float
    dist: float


@dataclass(frozen=True)
class Event:
    """
    One event as seen by the pair processing.

    ``tracklets`` is None when the event carries no multiplicity object,
    ``truth`` is None for real data.
    """

    run_number: int
    trigger_classes: tuple[str, ...]
    centrality: float
    tracks: tuple[Track, ...] = field(default_factory=tuple)
    tracklets: Optional[tuple[Tracklet, ...]] = None
    truth: Optional[tuple[TruthParticle, ...]] = None

    def __post_init__(self):
        """Validate the event."""
        if self.run_number < 0:
            raise ValueError(f"run_number must be non-negative, got {self.run_number}")

    @property
    def has_truth(self) -> bool:
        return self.truth is not None

    def truth_particle(self, index: int) -> Optional[TruthParticle]:
        """Truth particle at ``index``, or None when out of range or no truth."""
        if self.truth is None or index < 0 or index >= len(self.truth):
            return None
        return self.truth[index]


@dataclass(frozen=True)
class SelectedEntity:
    """
    A particle accepted by the selection for one processing pass.

    Holds a reference to the source track (or truth particle) together
    with the provenance information derived for it.
    """

    particle: Any
    particle_type: str
    index: int
    ancestor: int = -1
    history: str = ""

    @property
    def charge(self) -> int:
        return self.particle.charge


@dataclass(frozen=True)
class PairSample:
    """Kinematics of a pair, before the per-level tracklet count is attached."""

    pt: float
    rapidity: float
    phi: float
    inv_mass: float

    def coordinates(self, centrality: float, n_tracklets: int) -> tuple[float, ...]:
        """Sample in pair-histogram axis order."""
        return (self.pt, self.rapidity, self.phi, self.inv_mass, centrality, float(n_tracklets))
