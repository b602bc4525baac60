"""
Factory building store objects on first request.

Objects are selected by kind; the store never needs to inspect types to
know what to create.
"""
from enum import Enum
from typing import Callable, Union

from domain.axes import AxesTemplate
from services.histograms.counter import ScalarCounter
from services.histograms.errors import UnknownObjectRequest
from services.histograms.sparse_histogram import SparseHistogram

StoreObject = Union[SparseHistogram, ScalarCounter]


class ObjectKind(Enum):
    """Kinds of objects a store may hold, valued by their object name."""

    PAIR_HISTOGRAM = "pair_sparse"
    EVENT_COUNTER = "nevents"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_name(cls, name: Union[str, 'ObjectKind']) -> 'ObjectKind':
        if isinstance(name, ObjectKind):
            return name
        try:
            return cls(name)
        except ValueError:
            raise UnknownObjectRequest(name) from None


def kind_of(obj: StoreObject) -> ObjectKind:
    if isinstance(obj, SparseHistogram):
        return ObjectKind.PAIR_HISTOGRAM
    if isinstance(obj, ScalarCounter):
        return ObjectKind.EVENT_COUNTER
    raise TypeError(f"Unsupported store object {type(obj).__name__}")


class ObjectFactory:
    """
    Builds new store objects from one shared axes template.

    Every histogram created here shares ``template`` (and so its bin edges);
    no mutable state is shared between them.
    """

    def __init__(self, template: AxesTemplate):
        self.template = template
        self._builders: dict[ObjectKind, Callable[[], StoreObject]] = {
            ObjectKind.PAIR_HISTOGRAM: self._make_pair_histogram,
            ObjectKind.EVENT_COUNTER: ScalarCounter,
        }

    def _make_pair_histogram(self) -> SparseHistogram:
        return SparseHistogram(self.template, ObjectKind.PAIR_HISTOGRAM.value)

    def create(self, name: Union[str, ObjectKind]) -> StoreObject:
        """
        Build a new object of the kind called ``name``.

        Raises:
            UnknownObjectRequest: If no builder exists for ``name``
        """
        kind = ObjectKind.from_name(name)
        builder = self._builders.get(kind)
        if builder is None:
            raise UnknownObjectRequest(str(name))
        return builder()
