"""
Projections of the pair histograms onto each axis, for inspection.

Every axis of every non-empty histogram is projected with the rapidity
axis restricted to the configured range. Projections without content
are dropped.
"""

import logging
from typing import Iterator

from domain.axes import AXIS_Y
from services.histograms.sparse_histogram import Projection
from services.histograms.store import MergeableStore

logger = logging.getLogger(__name__)


def projection_name(segments: tuple[str, ...], axis: int) -> str:
    """``trigger/level/pairType/charge`` -> ``trigger_level_charge_pairType_proj<axis>``."""
    trigger, level, pair_type, charge = segments
    return f"{trigger}_{level}_{charge}_{pair_type}_proj{axis}"


def build_projections(
    store: MergeableStore,
    rapidity_range: tuple[float, float] = (-3.999, -2.501)
) -> Iterator[tuple[str, Projection]]:
    for path, histogram in store.histograms():
        if histogram.is_empty():
            continue
        if path.depth != 4:
            logger.warning(f"Skipping projections of unexpected path {path}")
            continue
        for axis in range(histogram.template.ndim):
            projection = histogram.project(axis, ranges={AXIS_Y: rapidity_range})
            if projection is None:
                continue
            yield projection_name(path.segments, axis), projection
