"""
Histogram services.

Sparse histograms, counters and the mergeable store that holds them.
"""

from .errors import StoreError, UnknownObjectRequest, AxisMismatchError, KindMismatchError
from .sparse_histogram import SparseHistogram, Projection
from .counter import ScalarCounter
from .factory import ObjectFactory, ObjectKind
from .store import MergeableStore

__all__ = [
    "StoreError",
    "UnknownObjectRequest",
    "AxisMismatchError",
    "KindMismatchError",
    "SparseHistogram",
    "Projection",
    "ScalarCounter",
    "ObjectFactory",
    "ObjectKind",
    "MergeableStore",
]
