"""
State handlers for pipeline execution.

Each handler implements logic for a specific pipeline state.
"""

from .base import StateHandler
from .processing_handler import ProcessingHandler
from .merging_handler import MergingHandler
from .output_handler import OutputHandler

__all__ = [
    "StateHandler",
    "ProcessingHandler",
    "MergingHandler",
    "OutputHandler",
]
