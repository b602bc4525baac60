"""
Ancestry resolution from simulation truth.

``AncestryResolver`` is the interface the pair processing needs;
``TruthAncestryResolver`` is the default policy, walking mother links of
the generator record.
"""
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from domain.events import SelectedEntity, TruthParticle

UNIDENTIFIED = "Unidentified"

QUARKONIUM_PDGS = {443, 100443, 553, 100553, 200553}
PARTON_PDGS = {1, 2, 3, 4, 5, 6, 7, 8, 21}
PROTON_PDG = 2212


class AncestryResolver(ABC):
    """Maps selected particles and truth information to provenance labels."""

    @abstractmethod
    def particle_type(self, particle, simulation: Optional[Sequence[TruthParticle]]) -> str:
        """Category of the source of one particle."""

    @abstractmethod
    def ancestor(self, particle, simulation: Optional[Sequence[TruthParticle]]) -> int:
        """Index of the particle's relevant ancestor, -1 if none."""

    @abstractmethod
    def history(self, particle, simulation: Optional[Sequence[TruthParticle]]) -> str:
        """Human-readable provenance trail."""

    @abstractmethod
    def common_ancestor(self, particle1, particle2, simulation: Optional[Sequence[TruthParticle]]) -> int:
        """Index of the closest common ancestor, -1 if none."""

    @abstractmethod
    def classify(self, entity1: SelectedEntity, entity2: SelectedEntity,
                 ancestor: int, simulation: Optional[Sequence[TruthParticle]]) -> str:
        """Pair type label."""


def heaviest_flavour(pdg_code: int) -> int:
    """Heaviest quark flavour of a hadron code, 0 for non hadrons."""
    code = abs(pdg_code)
    if code < 100:
        return 0
    meson_flavour = (code // 100) % 10
    baryon_flavour = (code // 1000) % 10
    return max(meson_flavour, baryon_flavour)


def category_of(pdg_code: int) -> Optional[str]:
    """Source category of a truth particle, None when it does not define one."""
    code = abs(pdg_code)
    if code in QUARKONIUM_PDGS:
        return "Quarkonium"
    if code == 23:
        return "Z"
    if code == 24:
        return "W"
    flavour = heaviest_flavour(code)
    if flavour == 5:
        return "Beauty"
    if flavour == 4:
        return "Charm"
    if flavour in (1, 2, 3):
        return "LightHadron"
    return None


class TruthAncestryResolver(AncestryResolver):
    """
    Default resolver working on a list of ``TruthParticle``.

    The category of a muon is the one of its closest categorised ancestor,
    walking up the mother chain; heavier categories found further up win
    (a charm hadron from a beauty decay counts as beauty).
    """

    PRIORITY = ["Quarkonium", "Z", "W", "Beauty", "Charm", "LightHadron"]

    def __init__(self, max_depth: int = 100):
        self.max_depth = max_depth

    def _truth_of(self, particle, simulation) -> Optional[TruthParticle]:
        if simulation is None:
            return None
        label = particle.label
        if label < 0 or label >= len(simulation):
            return None
        return simulation[label]

    def _mother_chain(self, particle, simulation) -> list[TruthParticle]:
        """Ancestors from the closest mother upwards, partons and beams excluded."""
        chain = []
        current = self._truth_of(particle, simulation)
        depth = 0
        while current is not None and 0 <= current.mother < len(simulation) and depth < self.max_depth:
            current = simulation[current.mother]
            depth += 1
            if abs(current.pdg_code) in PARTON_PDGS:
                continue
            if current.pdg_code == PROTON_PDG and current.mother < 0:
                continue
            chain.append(current)
        return chain

    def _classifying_ancestor(self, particle, simulation) -> Optional[TruthParticle]:
        best = None
        for mother in self._mother_chain(particle, simulation):
            category = category_of(mother.pdg_code)
            if category is None:
                continue
            if best is None or self.PRIORITY.index(category) < self.PRIORITY.index(category_of(best.pdg_code)):
                best = mother
        return best

    def particle_type(self, particle, simulation) -> str:
        ancestor = self._classifying_ancestor(particle, simulation)
        if ancestor is None:
            return UNIDENTIFIED
        return category_of(ancestor.pdg_code)

    def ancestor(self, particle, simulation) -> int:
        ancestor = self._classifying_ancestor(particle, simulation)
        return -1 if ancestor is None else ancestor.index

    def history(self, particle, simulation) -> str:
        truth = self._truth_of(particle, simulation)
        if truth is None:
            return ""
        trail = [f"{truth.pdg_code} ({truth.index})"]
        trail.extend(f"{m.pdg_code} ({m.index})" for m in self._mother_chain(particle, simulation))
        return " <- ".join(trail)

    def common_ancestor(self, particle1, particle2, simulation) -> int:
        first_chain = {m.index for m in self._mother_chain(particle1, simulation)}
        if not first_chain:
            return -1
        for mother in self._mother_chain(particle2, simulation):
            if mother.index in first_chain:
                return mother.index
        return -1

    def classify(self, entity1, entity2, ancestor, simulation) -> str:
        if simulation is None:
            return UNIDENTIFIED
        if 0 <= ancestor < len(simulation):
            category = category_of(simulation[ancestor].pdg_code)
            if category is not None:
                return category
        sources = sorted((entity1.particle_type, entity2.particle_type))
        if sources == [UNIDENTIFIED, UNIDENTIFIED]:
            return UNIDENTIFIED
        # Uncorrelated: label by both sources, in a fixed order
        return "-".join(sources)
