"""
Store path domain model.

Ordered tuple of category labels addressing objects in a mergeable store.
"""

from dataclasses import dataclass


@dataclass(frozen=True, order=True)
class StorePath:
    """
    Hierarchical path such as ``/CINT7/none/charm/OS``.

    Levels: trigger class, tracklet-distance cut level, pair type,
    charge combination. Shorter paths (e.g. ``/CINT7``) are valid too.
    """

    segments: tuple[str, ...]

    def __post_init__(self):
        """Validate path segments."""
        for segment in self.segments:
            if not segment:
                raise ValueError(f"Empty segment in path {self.segments!r}")
            if "/" in segment:
                raise ValueError(f"Segment {segment!r} cannot contain '/'")

    @classmethod
    def of(cls, *segments: str) -> 'StorePath':
        return cls(tuple(str(s) for s in segments))

    @classmethod
    def parse(cls, identifier: str) -> 'StorePath':
        """Create a path from its ``/a/b/c`` string form."""
        return cls(tuple(part for part in identifier.split("/") if part))

    @property
    def depth(self) -> int:
        return len(self.segments)

    def __str__(self) -> str:
        return "/" + "/".join(self.segments)
