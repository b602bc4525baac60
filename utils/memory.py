"""
Memory helpers for diagnostics.

Approximate object sizes and process memory usage. Nothing here affects
results; it only feeds log lines and statistics.
"""

import sys

import numpy as np
import psutil


def get_size(obj, seen=None) -> int:
    """Recursively calculate the approximate size of ``obj`` in bytes."""
    size = sys.getsizeof(obj)
    if seen is None:
        seen = set()

    obj_id = id(obj)
    if obj_id in seen:
        return 0
    seen.add(obj_id)

    if isinstance(obj, np.ndarray):
        return obj.nbytes
    if isinstance(obj, dict):
        size += sum(get_size(v, seen) for v in obj.values())
        size += sum(get_size(k, seen) for k in obj.keys())
    elif hasattr(obj, '__dict__'):
        size += get_size(obj.__dict__, seen)
    elif isinstance(obj, (list, tuple, set, frozenset)):
        size += sum(get_size(i, seen) for i in obj)

    return size


def current_memory_mb() -> float:
    """Resident memory of this process in MB."""
    return psutil.Process().memory_info().rss / (1024 * 1024)
