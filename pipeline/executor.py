"""
PipelineExecutor - High-level pipeline orchestrator.

Wires together all services and executes the state machine.

Architecture (multi-job mode):
  Each batch job processes its slice of the input files and saves:
    - batch_N_stats.json   -> logs/
    - batch_N.npz          -> histograms/
  The merge job (--merge-only) folds every batch_*.npz into one store,
  writes it with its projections and aggregates the JSON stats.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from domain.config import PipelineConfig
from domain.statistics import ProcessingStatistics
from orchestration import PipelineState, PipelineContext, StateMachine
from orchestration.handlers import ProcessingHandler, MergingHandler, OutputHandler
from services.histograms.store_io import find_batch_stores, load_store
from services.processing.worker import ParallelProcessor


class PipelineExecutor:
    """
    High-level pipeline executor.

    Responsible for:
    1. Creating all services with dependency injection
    2. Building the state machine with handlers
    3. Running the pipeline
    4. Returning results
    """

    def __init__(self, config: PipelineConfig):
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)
        self.state_machine = self._build_state_machine()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(self) -> PipelineContext:
        """Execute the pipeline and return final context."""
        self.logger.info("Initializing pipeline execution")
        initial_context = PipelineContext(config=self.config, current_state=PipelineState.IDLE)
        final_context = self.state_machine.run(initial_context)
        self._log_results(final_context)
        return final_context

    def save_batch_stats(self, run_dir: str, batch_index: int, context: PipelineContext) -> str:
        """
        Save per-batch statistics JSON so the merge job can aggregate them.

        Saved to: <run_dir>/logs/batch_<N>_stats.json

        Args:
            run_dir:     Run directory path
            batch_index: 1-based batch index
            context:     Final pipeline context after execution
        """
        stats = {
            "batch_index": batch_index,
            "summary": context.get_summary(),
            "input_files": context.input_files,
            "failed_files": [list(f) for f in context.failed_files],
        }

        if context.processing_stats:
            stats["processing"] = context.processing_stats.to_dict()

        for key, value in context.custom_data.items():
            stats[key] = value

        logs_dir = os.path.join(run_dir, "logs")
        os.makedirs(logs_dir, exist_ok=True)
        stats_path = os.path.join(logs_dir, f"batch_{batch_index}_stats.json")

        with open(stats_path, "w") as f:
            json.dump(stats, f, indent=2, default=str)

        self.logger.info(f"Saved batch stats to: {stats_path}")
        return stats_path

    def merge_outputs(self, run_dir: str) -> PipelineContext:
        """
        Merge outputs from all batch jobs:
          1. Fold batch_*.npz stores and write the merged store and projections
          2. Aggregate stats from batch JSON files

        Args:
            run_dir: Run directory path

        Returns:
            Final context of the merge run
        """
        self.logger.info(f"=== Merging outputs from: {run_dir} ===")

        hist_dir = self.config.processing.output_dir
        logs_dir = os.path.join(run_dir, "logs")

        # ---- 1. merge batch stores ----
        batch_files = find_batch_stores(hist_dir)
        self.logger.info(f"Found {len(batch_files)} batch stores in {hist_dir}")
        stores = [load_store(path) for path in batch_files]

        initial_context = (
            PipelineContext(config=self.config, current_state=PipelineState.MERGING)
            .with_input_files(batch_files)
            .with_worker_stores(stores)
        )
        final_context = self.state_machine.run(initial_context)
        self._log_results(final_context)

        # ---- 2. Aggregate batch stats ----
        batch_stats_files = sorted(Path(logs_dir).glob("batch_*_stats.json"))
        if batch_stats_files:
            self.logger.info(f"Aggregating stats from {len(batch_stats_files)} batch files")
            aggregated = self._aggregate_batch_stats(batch_stats_files)
            agg_path = os.path.join(logs_dir, "aggregated_stats.json")
            with open(agg_path, "w") as f:
                json.dump(aggregated, f, indent=2, default=str)
            self.logger.info(f"Aggregated stats saved to: {agg_path}")

        return final_context

    @staticmethod
    def _aggregate_batch_stats(stats_files: list[Path]) -> dict:
        """
        Aggregate per-batch stats JSON files into a single summary dict.
        """
        batch_stats = []
        for sf in stats_files:
            with open(sf) as f:
                batch_stats.append(json.load(f))

        aggregated = {
            "num_batches": len(batch_stats),
            "batches": [s.get("batch_index") for s in batch_stats],
            "total_input_files": sum(len(s.get("input_files", [])) for s in batch_stats),
            "failed_files": [f for s in batch_stats for f in s.get("failed_files", [])],
        }

        # Sum integer counters; formatted fields (rates, memory) are skipped
        processing_sums = {}
        for s in batch_stats:
            for key, value in s.get("processing", {}).items():
                if isinstance(value, int):
                    processing_sums[key] = processing_sums.get(key, 0) + value
        if processing_sums:
            aggregated["processing_totals"] = processing_sums

        aggregated["total_batch_time_sec"] = sum(
            s.get("summary", {}).get("elapsed_time_sec", 0) for s in batch_stats
        )
        return aggregated

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def _build_state_machine(self) -> StateMachine:
        self.logger.info("Building state machine with services")
        handlers = {
            PipelineState.PROCESSING: ProcessingHandler(ParallelProcessor(self.config)),
            PipelineState.MERGING: MergingHandler(),
            PipelineState.WRITING_OUTPUT: OutputHandler(),
        }
        return StateMachine(handlers)

    def _log_results(self, context: PipelineContext):
        self.logger.info("=" * 60)
        self.logger.info("Pipeline Execution Summary")
        self.logger.info("=" * 60)

        summary = context.get_summary()
        for key, value in summary.items():
            self.logger.info(f"{key:30s}: {value}")

        if context.processing_stats:
            self.logger.info("Processing Statistics:")
            for key, value in context.processing_stats.to_dict().items():
                self.logger.info(f"{key:30s}: {value}")

        self.logger.info("=" * 60)
