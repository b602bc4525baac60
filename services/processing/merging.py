"""
Merge stage - Combines worker stores into one.

Stores are folded one at a time into an accumulator. Since store merging
is associative and commutative, any grouping (left fold, pairwise tree)
gives the same result.
"""
import logging
from typing import Iterable, Optional

from services.histograms.store import MergeableStore

logger = logging.getLogger(__name__)


def merge_stores(stores: Iterable[MergeableStore], name: Optional[str] = None) -> MergeableStore:
    """
    Left fold of ``stores`` into the first one.

    The input stores are consumed. An empty input gives an empty store.
    """
    accumulator = None
    for store in stores:
        if accumulator is None:
            accumulator = store
            continue
        accumulator.merge(store)

    if accumulator is None:
        return MergeableStore(name=name or "merged")
    if name:
        accumulator.name = name
    return accumulator


def tree_merge_stores(stores: list[MergeableStore], name: Optional[str] = None) -> MergeableStore:
    """Pairwise reduction of ``stores``: (a+b)+(c+d) instead of ((a+b)+c)+d."""
    level = list(stores)
    if not level:
        return MergeableStore(name=name or "merged")

    while len(level) > 1:
        next_level = []
        for i in range(0, len(level) - 1, 2):
            next_level.append(level[i].merge(level[i + 1]))
        if len(level) % 2 == 1:
            next_level.append(level[-1])
        logger.debug(f"Merged {len(level)} stores into {len(next_level)}")
        level = next_level

    result = level[0]
    if name:
        result.name = name
    return result
