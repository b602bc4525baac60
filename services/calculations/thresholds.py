"""
Cascading threshold counting of tracklets around a pair.

Cuts are applied from the loosest (largest distance) to the tightest; a
tracklet failing one cut fails all the following ones, so the scan stops
there. The last slot of every result is the unconditional count.
"""
import math
from typing import Iterable, Optional, Sequence

from domain.events import Tracklet
from services.calculations import consts

NO_CUT_LABEL = "none"


def passes_thresholds(dist: float, thresholds: Sequence[float]) -> list[bool]:
    """
    Cut-by-cut pass flags for one distance value.

    Args:
        dist: Tracklet distance
        thresholds: Cuts sorted from loosest to tightest

    Returns:
        One flag per threshold followed by the always-true unconditional slot
    """
    flags = [False] * (len(thresholds) + 1)
    for icut, cut in enumerate(thresholds):
        if dist > cut:
            break
        flags[icut] = True
    flags[-1] = True
    return flags


def is_in_phi_window(pair_phi: float, tracklet_phi: float,
                     window: float = consts.TRACKLET_PHI_WINDOW) -> bool:
    return abs(pair_phi - tracklet_phi) <= window


def count_tracklets(
    tracklets: Optional[Sequence[Tracklet]],
    pair_phi: float,
    thresholds: Sequence[float],
    window: float = consts.TRACKLET_PHI_WINDOW
) -> list[int]:
    """
    Count tracklets in the azimuthal window of the pair, per cut level.

    Args:
        tracklets: Tracklets of the event, or None if the event has none
        pair_phi: Pair azimuth in [0, 2pi)
        thresholds: Cuts sorted from loosest to tightest
        window: Maximum azimuthal distance of a counted tracklet

    Returns:
        ``len(thresholds) + 1`` counts, the last one without distance cut
    """
    counts = [0] * (len(thresholds) + 1)
    if tracklets is None:
        return counts

    for tracklet in tracklets:
        if not is_in_phi_window(pair_phi, tracklet.phi, window):
            continue
        for icut, cut in enumerate(thresholds):
            # Cuts are ordered: failing this one means failing the tighter ones
            if tracklet.dist > cut:
                break
            counts[icut] += 1
        counts[-1] += 1
    return counts


def level_labels(thresholds: Sequence[float]) -> list[str]:
    """Path labels of the cut levels, e.g. ``['dist_0.01', 'none']``."""
    return [f"dist_{cut:g}" for cut in thresholds] + [NO_CUT_LABEL]


def describe_thresholds(thresholds: Sequence[float]) -> str:
    if not thresholds:
        return NO_CUT_LABEL
    return "  ".join(f"{cut:g}" for cut in thresholds)


def normalize_thresholds(values: Iterable[float]) -> tuple[float, ...]:
    """Sort cuts from loosest to tightest and drop duplicates and NaNs."""
    return tuple(sorted({float(v) for v in values if not math.isnan(float(v))}, reverse=True))
