#!/usr/bin/env python3
"""
Main entry point for the dimuon pair pipeline.

Supports:
  - Single-job execution (default)
  - Batch job execution via --batch-job-index / --total-batch-jobs
  - Shared run directory via --run-dir  (for multi-job PBS arrays)
  - Merge-only mode via --merge-only --run-dir <path>

Architecture (multi-job):
  Each batch job processes its slice of the input files with its own
  workers and writes one store (batch_N.npz) and a stats JSON
  (batch_N_stats.json). The merge job (--merge-only) folds the batch
  stores, writes the merged store with its projections and aggregates
  the stats.
"""

import sys
import os
import logging
import argparse
import yaml

from domain.config import PipelineConfig
from pipeline.executor import PipelineExecutor
from utils.paths import create_timestamped_run_dir, update_config_paths_with_run_dir


def setup_logging(level: str = "INFO"):
    """Setup logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def load_config(config_path: str) -> dict:
    """Load configuration from YAML file."""
    with open(config_path, 'r') as f:
        return yaml.safe_load(f) or {}


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Dimuon pair histogram pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Single job
  python main.py

  # Single job with custom config
  python main.py --config my_config.yaml

  # Batch array job - processes its slice of the input files
  python main.py --batch-job-index 1 --total-batch-jobs 4 \\
      --run-dir /data/dimuon/run_20260217

  # Merge job - fold batch stores, write projections, aggregate stats
  python main.py --merge-only --run-dir /data/dimuon/run_20260217

  # Dry-run to validate config
  python main.py --dry-run
        """
    )

    parser.add_argument(
        "--config", type=str, default="config.yaml",
        help="Path to configuration file (default: config.yaml)"
    )
    parser.add_argument(
        "--log-level", type=str, default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Validate configuration without running pipeline"
    )

    # --- Batch job arguments ---
    batch_group = parser.add_argument_group("Batch Job Options")
    batch_group.add_argument(
        "--batch-job-index", type=int, default=None,
        help="This job's index (1-based, matching PBS $PBS_ARRAY_INDEX)"
    )
    batch_group.add_argument(
        "--total-batch-jobs", type=int, default=None,
        help="Total number of batch jobs"
    )
    batch_group.add_argument(
        "--run-dir", type=str, default=None,
        help="Pre-created shared run directory (skips timestamped dir creation)"
    )

    # --- Post-run options ---
    post_group = parser.add_argument_group("Post-Run Options")
    post_group.add_argument(
        "--merge-only", action="store_true",
        help="Merge batch stores into one and aggregate stats"
    )

    args = parser.parse_args(argv)

    if args.batch_job_index is not None and args.total_batch_jobs is None:
        parser.error("--total-batch-jobs is required when --batch-job-index is set")
    if args.total_batch_jobs is not None and args.batch_job_index is None:
        parser.error("--batch-job-index is required when --total-batch-jobs is set")
    if args.merge_only and args.run_dir is None:
        parser.error("--run-dir is required when --merge-only is set")
    if args.merge_only and args.batch_job_index is not None:
        parser.error("--merge-only and --batch-job-index are mutually exclusive")

    return args


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    logger.info("=" * 60)
    logger.info("Dimuon pair pipeline")
    logger.info("=" * 60)

    try:
        # ------------------------------------------------------------------
        # MERGE-ONLY MODE: fold batch stores + aggregate stats
        # ------------------------------------------------------------------
        if args.merge_only:
            logger.info(f"Merge-only mode: merging outputs in {args.run_dir}")
            config_dict = load_config(args.config)
            config_dict = update_config_paths_with_run_dir(config_dict, args.run_dir)
            config_dict.get("run_metadata", {}).pop("batch_job_index", None)
            config = PipelineConfig.from_dict(config_dict)

            executor = PipelineExecutor(config)
            final_context = executor.merge_outputs(args.run_dir)
            if final_context.is_successful:
                logger.info("Merge completed successfully")
                return 0
            logger.error(f"Merge failed: {final_context.error_message}")
            return 1

        # ------------------------------------------------------------------
        # NORMAL / BATCH PIPELINE MODE
        # ------------------------------------------------------------------
        logger.info(f"Loading configuration from: {args.config}")
        config_dict = load_config(args.config)

        # Inject batch job params from CLI into config (override YAML values)
        if args.batch_job_index is not None:
            config_dict.setdefault("run_metadata", {})
            config_dict["run_metadata"]["batch_job_index"] = args.batch_job_index
            config_dict["run_metadata"]["total_batch_jobs"] = args.total_batch_jobs

        # Determine run directory
        if args.run_dir:
            run_dir = args.run_dir
            os.makedirs(run_dir, exist_ok=True)
            logger.info(f"Using shared run directory: {run_dir}")
        else:
            run_metadata = config_dict.get('run_metadata', {})
            run_name = run_metadata.get('run_name', 'dimuon_run')
            base_output = run_metadata.get('base_output_dir', './output')
            run_dir = create_timestamped_run_dir(base_output, run_name)
            logger.info(f"Created timestamped run directory: {run_dir}")

        config_dict = update_config_paths_with_run_dir(config_dict, run_dir)

        config = PipelineConfig.from_dict(config_dict)
        logger.info("Configuration loaded and validated successfully")

        batch_info = ""
        if config.batch_job_index is not None:
            batch_info = f" (batch {config.batch_job_index}/{config.total_batch_jobs})"
        logger.info(f"Output directory: {config.processing.output_dir}{batch_info}")

        if args.dry_run:
            logger.info("Dry run mode - configuration is valid, exiting")
            logger.info(f"Input files: {len(config.processing.input_files)}")
            logger.info(f"Tracklet distance cuts: {list(config.analysis.tracklet_dist_cuts)}")
            logger.info(f"Run directory: {run_dir}")
            return 0

        executor = PipelineExecutor(config)
        final_context = executor.run()

        # Save per-batch stats JSON for later aggregation
        if config.batch_job_index is not None:
            executor.save_batch_stats(run_dir, config.batch_job_index, final_context)

        if final_context.is_successful:
            logger.info(f"Pipeline completed successfully{batch_info}")
            return 0
        else:
            logger.error(f"Pipeline failed: {final_context.error_message}")
            return 1

    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
