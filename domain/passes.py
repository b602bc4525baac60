"""
Processing pass domain model.

Each event is processed once per applicable pass; a pass fixes which
particles are paired and how the trigger labels are chosen.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ProcessingPass:
    """A processing pass over one collection of particles."""

    name: str
    uses_truth: bool

    # Single label used instead of the fired trigger classes
    fixed_trigger_label: Optional[str] = None

    # Whether the per-trigger pt cut may suppress filling
    apply_trigger_cuts: bool = False

    def is_applicable(self, has_truth: bool) -> bool:
        return has_truth or not self.uses_truth


RECONSTRUCTED = ProcessingPass(name="reconstructed", uses_truth=False, apply_trigger_cuts=True)
GENERATED = ProcessingPass(name="generated", uses_truth=True, fixed_trigger_label="generated")

DEFAULT_PASSES = (RECONSTRUCTED, GENERATED)
