"""
Base state handler.

A handler does the work of one run state and names the state to go to.
"""

from abc import ABC, abstractmethod
import logging

from orchestration.context import PipelineContext
from orchestration.states import PipelineState

# Default successor of each working state
NEXT_STATE = {
    PipelineState.IDLE: PipelineState.PROCESSING,
    PipelineState.PROCESSING: PipelineState.MERGING,
    PipelineState.MERGING: PipelineState.WRITING_OUTPUT,
}


class StateHandler(ABC):
    """
    Base class for state handlers.

    Handlers never mutate the context they receive; they return an
    updated copy together with the next state.
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def handle(self, context: PipelineContext) -> tuple[PipelineContext, PipelineState]:
        """
        Run this state.

        Args:
            context: Current pipeline context

        Returns:
            Tuple of (updated_context, next_state)

        Raises:
            Exception: Any error; the state machine turns it into FAILED
        """

    def _determine_next_state(self, context: PipelineContext) -> PipelineState:
        """Successor of the current state in a complete run, COMPLETED after the last one."""
        return NEXT_STATE.get(context.current_state, PipelineState.COMPLETED)

    def _log_state_entry(self, context: PipelineContext):
        self.logger.info(f"Entering state: {context.current_state}")

    def _log_state_exit(self, context: PipelineContext, next_state: PipelineState):
        self.logger.info(f"Exiting state: {context.current_state} -> {next_state}")
