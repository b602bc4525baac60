"""
Pipeline execution layer.

``PipelineExecutor`` builds the workers and handlers for one job and runs
them; it also merges the outputs of batch jobs.
"""

from .executor import PipelineExecutor

__all__ = ["PipelineExecutor"]
