"""
Path utilities for pipeline.

Handles timestamped directories and path management.
"""

import os
from datetime import datetime


def create_timestamped_run_dir(base_output_dir: str, run_name: str = None) -> str:
    """
    Create a timestamped directory for the current pipeline run.

    Args:
        base_output_dir: Base output directory (e.g., "./output")
        run_name: Optional run name to include in directory

    Returns:
        Path to the timestamped run directory

    Example:
        create_timestamped_run_dir("./output", "test_run")
        -> "./output/test_run_20260216_211730"
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    if run_name:
        dir_name = f"{run_name}_{timestamp}"
    else:
        dir_name = f"run_{timestamp}"

    run_dir = os.path.join(base_output_dir, dir_name)
    os.makedirs(run_dir, exist_ok=True)

    return run_dir


def _set_if_relative(config: dict, key: str, value: str):
    """Only overwrite a path if it's missing or relative (not an absolute override)."""
    if key not in config or not os.path.isabs(config[key]):
        config[key] = value


def update_config_paths_with_run_dir(config_dict: dict, run_dir: str) -> dict:
    """
    Inject default paths into config to use the run directory.

    A relative ``processing.output_dir`` is replaced with
    ``<run_dir>/histograms``; an absolute one is left untouched.

    Standard sub-directory layout under run_dir:
        histograms/   - stores (batch and merged) and projections
        logs/         - batch statistics

    Args:
        config_dict: Configuration dictionary
        run_dir: Run directory path

    Returns:
        Updated configuration dictionary
    """
    updated_config = config_dict.copy()

    for d in ("histograms", "logs"):
        os.makedirs(os.path.join(run_dir, d), exist_ok=True)

    processing = dict(updated_config.get("processing") or {})
    _set_if_relative(processing, "output_dir", os.path.join(run_dir, "histograms"))
    updated_config["processing"] = processing

    return updated_config
