"""
MergeableStore - path-addressed collection of histograms and counters.

Objects are created on first request through a factory and live for the
whole life of the store. Stores produced by independent workers are
combined with ``merge``, which is associative and commutative.
"""

import logging
from typing import Iterator, Optional, Union

from domain.paths import StorePath
from services.histograms.errors import AxisMismatchError, KindMismatchError, UnknownObjectRequest
from services.histograms.factory import ObjectFactory, ObjectKind, StoreObject, kind_of
from services.histograms.sparse_histogram import SparseHistogram
from utils.memory import get_size

StoreKey = tuple[StorePath, ObjectKind]
PathLike = Union[StorePath, str]


def _as_path(path: PathLike) -> StorePath:
    return path if isinstance(path, StorePath) else StorePath.parse(path)


class MergeableStore:
    """
    Mapping ``(path, object kind) -> object``.

    One store is owned by exactly one worker while events are processed;
    it is not safe to share between threads or processes.
    """

    def __init__(self, name: str = "dimuon", factory: Optional[ObjectFactory] = None):
        self.name = name
        self.factory = factory
        self._objects: dict[StoreKey, StoreObject] = {}
        self.logger = logging.getLogger(self.__class__.__name__)

    # ------------------------------------------------------------------
    # Lookup and creation
    # ------------------------------------------------------------------

    def get(self, path: PathLike, kind: Union[str, ObjectKind]) -> Optional[StoreObject]:
        """Existing object at ``path``, or None."""
        try:
            key = (_as_path(path), ObjectKind.from_name(kind))
        except UnknownObjectRequest:
            return None
        return self._objects.get(key)

    def resolve(
        self,
        path: PathLike,
        kind: Union[str, ObjectKind],
        factory: Optional[ObjectFactory] = None
    ) -> Optional[StoreObject]:
        """
        Return the object at ``path``, creating it on first request.

        Args:
            path: Store path
            kind: Object kind or its name (``pair_sparse``, ``nevents``)
            factory: Factory to use instead of the store's own

        Returns:
            The stored object, or None if the factory does not know ``kind``
        """
        path = _as_path(path)
        try:
            kind = ObjectKind.from_name(kind)
        except UnknownObjectRequest as e:
            self.logger.error(f"{e} requested at {path}")
            return None

        key = (path, kind)
        obj = self._objects.get(key)
        if obj is not None:
            return obj

        factory = factory or self.factory
        if factory is None:
            raise ValueError(f"Store {self.name!r} has no factory to create {kind} at {path}")

        try:
            obj = factory.create(kind)
        except UnknownObjectRequest as e:
            self.logger.error(f"{e} requested at {path}")
            return None

        self._objects[key] = obj
        # Walking the store is costly, only do it when the line is printed
        if self.logger.isEnabledFor(logging.INFO):
            self.logger.info(
                f"Mergeable object collection size {self.estimate_size() / 1024.0 / 1024.0:g} MB"
            )
        return obj

    def adopt(self, path: PathLike, obj: StoreObject):
        """Insert an existing object; the path must be free."""
        key = (_as_path(path), kind_of(obj))
        if key in self._objects:
            raise KeyError(f"Object {key[1]} already exists at {key[0]}")
        self._objects[key] = obj

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, key: StoreKey) -> bool:
        return key in self._objects

    def keys(self) -> list[StoreKey]:
        return sorted(self._objects.keys(), key=lambda k: (k[0], k[1].value))

    def items(self) -> Iterator[tuple[StoreKey, StoreObject]]:
        for key in self.keys():
            yield key, self._objects[key]

    def paths(self, kind: Optional[ObjectKind] = None) -> list[StorePath]:
        return sorted({path for path, k in self._objects if kind is None or k == kind})

    def histograms(self) -> Iterator[tuple[StorePath, SparseHistogram]]:
        for (path, kind), obj in self.items():
            if kind == ObjectKind.PAIR_HISTOGRAM:
                yield path, obj

    def list_keys(self, level: int) -> list[str]:
        """Distinct path segments found at depth ``level``, sorted."""
        return sorted({
            path.segments[level] for path, _ in self._objects if len(path.segments) > level
        })

    def estimate_size(self) -> int:
        """Approximate memory footprint in bytes, for diagnostics only."""
        return get_size(self._objects)

    def is_empty(self) -> bool:
        return not self._objects

    # ------------------------------------------------------------------
    # Merging
    # ------------------------------------------------------------------

    def _check_mergeable(self, other: 'MergeableStore'):
        for key, obj in other._objects.items():
            mine = self._objects.get(key)
            if mine is None:
                continue
            if type(mine) is not type(obj):
                raise KindMismatchError(f"Cannot merge {type(obj).__name__} into {type(mine).__name__} at {key[0]}")
            if isinstance(mine, SparseHistogram):
                try:
                    mine.check_compatible(obj)
                except AxisMismatchError as e:
                    raise AxisMismatchError(f"{e} at {key[0]}") from None

    def merge(self, other: 'MergeableStore') -> 'MergeableStore':
        """
        Fold ``other`` into this store and return this store.

        Shared keys are summed; keys only present in ``other`` are moved
        here. ``other`` is left empty. Incompatible leaves abort the merge
        before anything is modified.

        Raises:
            AxisMismatchError: If two histograms under one key have different axes
        """
        if other is self:
            raise ValueError("Cannot merge a store into itself")
        self._check_mergeable(other)

        for key, obj in other._objects.items():
            mine = self._objects.get(key)
            if mine is None:
                self._objects[key] = obj
            else:
                mine.merge(obj)
        other._objects = {}
        return self

    def __eq__(self, other) -> bool:
        if not isinstance(other, MergeableStore):
            return NotImplemented
        return self._objects == other._objects

    def __repr__(self) -> str:
        return f"MergeableStore(name={self.name!r}, objects={len(self._objects)})"
