"""
Orchestration of a dimuon run.

Run-level state machine: workers fill stores, the stores are merged and
the merged store is written.
"""

from .states import PipelineState, is_valid_transition
from .context import PipelineContext
from .state_machine import StateMachine

__all__ = [
    "PipelineState",
    "PipelineContext",
    "StateMachine",
    "is_valid_transition",
]
