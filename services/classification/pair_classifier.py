"""
Pair classification.

Labels each pair with the resolver's pair type and its charge combination,
and applies the optional allow-list of pair types.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from domain.config import parse_pair_types
from domain.events import SelectedEntity, TruthParticle
from services.calculations.physics_calcs import charge_product
from services.classification.ancestry import AncestryResolver

SAME_SIGN = "SS"
OPPOSITE_SIGN = "OS"


def charge_label(entity1: SelectedEntity, entity2: SelectedEntity) -> str:
    return SAME_SIGN if charge_product(entity1, entity2) >= 0 else OPPOSITE_SIGN


@dataclass(frozen=True)
class PairLabels:
    """Outcome of classifying one pair."""

    pair_type: str
    charge: str
    common_ancestor: int


class PairTypeFilter:
    """
    Allow-list of pair types, configured as a comma-delimited string.

    Matching is exact per comma-separated label: ``Charm`` does not
    admit ``Charm-Beauty``. An empty allow-list admits everything.
    """

    def __init__(self, selected_pair_types: Optional[str] = None):
        self.allowed = parse_pair_types(selected_pair_types)

    @property
    def is_active(self) -> bool:
        return bool(self.allowed)

    def accepts(self, pair_type: str) -> bool:
        return not self.allowed or pair_type in self.allowed

    def describe(self) -> str:
        return ",".join(sorted(self.allowed)) if self.allowed else "all particles"


class PairClassifier:
    """Classifies pairs using an external ``AncestryResolver``."""

    def __init__(self, resolver: AncestryResolver, pair_filter: Optional[PairTypeFilter] = None):
        self.resolver = resolver
        self.pair_filter = pair_filter or PairTypeFilter()
        self.logger = logging.getLogger(self.__class__.__name__)

    def classify(
        self,
        entity1: SelectedEntity,
        entity2: SelectedEntity,
        simulation: Optional[Sequence[TruthParticle]] = None
    ) -> PairLabels:
        """
        Pair type and charge label of a pair.

        The pair type is whatever the resolver answers for the common
        ancestor of the two particles.
        """
        ancestor = self.resolver.common_ancestor(entity1.particle, entity2.particle, simulation)
        pair_type = self.resolver.classify(entity1, entity2, ancestor, simulation)
        self.logger.debug(
            f"Srcs: {entity1.particle_type} {entity2.particle_type}  ancestor {ancestor} Type {pair_type}\n"
            f"{entity1.history}\n{entity2.history}"
        )
        return PairLabels(pair_type=pair_type, charge=charge_label(entity1, entity2), common_ancestor=ancestor)

    def is_selected(self, labels: PairLabels) -> bool:
        return self.pair_filter.accepts(labels.pair_type)
