"""
Errors raised by the mergeable store and its objects.
"""


class StoreError(Exception):
    """Base class for mergeable store errors."""


class UnknownObjectRequest(StoreError):
    """The factory does not know how to build the requested object."""

    def __init__(self, name: str):
        super().__init__(f"Unknown object {name}")
        self.name = name


class AxisMismatchError(StoreError):
    """Two histograms with different axes cannot be merged."""


class KindMismatchError(StoreError):
    """Two objects of different kinds were found under the same key."""
