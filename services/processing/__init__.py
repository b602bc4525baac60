"""
Processing services: per-event filling, workers and merging.
"""

from .collector import StatisticsCollector
from .event_processor import EventProcessor
from .event_states import EventState
from .merging import merge_stores, tree_merge_stores
from .projections import build_projections
from .worker import ParallelProcessor, Worker, WorkerResult, create_store, run_worker

__all__ = [
    "StatisticsCollector",
    "EventProcessor",
    "EventState",
    "merge_stores",
    "tree_merge_stores",
    "build_projections",
    "ParallelProcessor",
    "Worker",
    "WorkerResult",
    "create_store",
    "run_worker",
]
