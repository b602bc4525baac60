"""
Domain models for the dimuon pair pipeline.

Pure data structures with validation, no business logic.
"""

from .axes import AxisSpec, AxesTemplate, make_pair_axes
from .events import Event, Track, TruthParticle, Tracklet, SelectedEntity, PairSample
from .passes import ProcessingPass, RECONSTRUCTED, GENERATED, DEFAULT_PASSES
from .paths import StorePath
from .statistics import ProcessingStatistics
from .config import (
    PipelineConfig,
    AnalysisConfig,
    SelectionConfig,
    ProcessingConfig,
)

__all__ = [
    "AxisSpec",
    "AxesTemplate",
    "make_pair_axes",
    "Event",
    "Track",
    "TruthParticle",
    "Tracklet",
    "SelectedEntity",
    "PairSample",
    "ProcessingPass",
    "RECONSTRUCTED",
    "GENERATED",
    "DEFAULT_PASSES",
    "StorePath",
    "ProcessingStatistics",
    "PipelineConfig",
    "AnalysisConfig",
    "SelectionConfig",
    "ProcessingConfig",
]
