"""
Splitting of input files between batch jobs and workers.

Slices are numbered from 1, like PBS array indices.
"""

import logging

logger = logging.getLogger(__name__)


def get_batch_slice(items: list, batch_index: int, total_batches: int) -> list:
    """
    Items handled by slice ``batch_index`` out of ``total_batches``.

    Every slice gets ``len(items) // total_batches`` items and the last one
    also takes the remainder, so the slices are disjoint and cover ``items``.

    Raises:
        ValueError: If ``batch_index`` is not in ``1..total_batches``
    """
    if not items:
        return []

    batch_index, total_batches = int(batch_index), int(total_batches)
    if not 1 <= batch_index <= total_batches:
        raise ValueError(f"batch_index must be 1..{total_batches}, got {batch_index}")

    size = len(items) // total_batches
    start = (batch_index - 1) * size
    stop = len(items) if batch_index == total_batches else start + size

    logger.debug(f"Slice {batch_index}/{total_batches}: items[{start}:{stop}] of {len(items)}")
    return items[start:stop]
