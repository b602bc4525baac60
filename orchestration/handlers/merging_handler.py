"""
MergingHandler - Handles merging state.

Folds the worker stores into a single store.
"""

from orchestration.context import PipelineContext
from orchestration.states import PipelineState
from services.processing.merging import merge_stores
from services.processing.worker import create_store
from .base import StateHandler


class MergingHandler(StateHandler):
    """
    Handler for MERGING state.

    Incompatible stores (axis or kind mismatch) fail the pipeline; the
    state machine turns the raised error into the FAILED state.
    """

    def handle(self, context: PipelineContext) -> tuple[PipelineContext, PipelineState]:
        self._log_state_entry(context)

        stores = list(context.worker_stores)
        if not stores:
            self.logger.warning("No worker stores to merge, output will be empty")
            merged = create_store(context.config, name=context.config.run_name)
        else:
            self.logger.info(f"Merging {len(stores)} worker stores")
            merged = merge_stores(stores, name=context.config.run_name)

        self.logger.info(f"Merged store holds {len(merged)} objects")

        updated_context = context.with_merged_store(merged)
        next_state = self._determine_next_state(updated_context)
        self._log_state_exit(context, next_state)
        return updated_context, next_state
