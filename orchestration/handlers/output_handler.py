"""
OutputHandler - Handles writing output state.

Persists the merged store and, for complete runs, the projections.
"""

import os

from orchestration.context import PipelineContext
from orchestration.states import PipelineState
from services.histograms.store import MergeableStore
from services.histograms.store_io import save_store, write_projections_root
from services.processing.projections import build_projections
from .base import StateHandler

# Depth of each path segment: trigger/level/pairType/charge
KEY_LEVELS = ("trigger", "tracklet cut", "pair type", "charge")


class OutputHandler(StateHandler):
    """
    Handler for WRITING_OUTPUT state.

    A batch job writes ``batch_<N>.npz`` for the merge job and no
    projections; a complete run writes the configured store file and
    the projections file.
    """

    def log_keys(self, store: MergeableStore):
        for level, label in enumerate(KEY_LEVELS):
            self.logger.info(f"Keys at level {level} ({label}): {', '.join(store.list_keys(level)) or '-'}")

    def handle(self, context: PipelineContext) -> tuple[PipelineContext, PipelineState]:
        self._log_state_entry(context)

        config = context.config
        processing = config.processing
        store = context.merged_store
        if store is None:
            raise RuntimeError("No merged store to write")

        self.log_keys(store)
        os.makedirs(processing.output_dir, exist_ok=True)

        output_files = []
        if config.batch_job_index is not None:
            store_path = os.path.join(processing.output_dir, f"batch_{config.batch_job_index}.npz")
            output_files.append(save_store(store, store_path))
        else:
            store_path = os.path.join(processing.output_dir, processing.output_filename)
            output_files.append(save_store(store, store_path))

            if processing.write_projections:
                projections_path = os.path.join(processing.output_dir, processing.projections_filename)
                written = write_projections_root(
                    build_projections(store, config.analysis.projection_rapidity_range),
                    projections_path
                )
                if written:
                    output_files.append(projections_path)

        updated_context = context.with_output_files(output_files)
        next_state = PipelineState.COMPLETED
        self._log_state_exit(context, next_state)
        return updated_context, next_state
