"""
Classification services.

Pair type and charge labelling of selected particle pairs.
"""

from .ancestry import AncestryResolver, TruthAncestryResolver, UNIDENTIFIED
from .pair_classifier import (
    PairClassifier,
    PairTypeFilter,
    PairLabels,
    charge_label,
    SAME_SIGN,
    OPPOSITE_SIGN,
)

__all__ = [
    "AncestryResolver",
    "TruthAncestryResolver",
    "UNIDENTIFIED",
    "PairClassifier",
    "PairTypeFilter",
    "PairLabels",
    "charge_label",
    "SAME_SIGN",
    "OPPOSITE_SIGN",
]
