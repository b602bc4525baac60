"""
Configuration domain models.

Validated configuration objects for the pair analysis.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional


def normalize_dist_cuts(values: Iterable[float]) -> tuple[float, ...]:
    """Sort tracklet-distance cuts from loosest (largest) to tightest, without duplicates."""
    return tuple(sorted({float(v) for v in values}, reverse=True))


def parse_pair_types(selected: Optional[str]) -> frozenset[str]:
    """Split a comma-delimited allow-list into its exact labels."""
    if not selected:
        return frozenset()
    return frozenset(part.strip() for part in selected.split(",") if part.strip())


@dataclass(frozen=True)
class AnalysisConfig:
    """Configuration of the pair classification and binning."""

    # Tracklet distance cuts, stored loosest first
    tracklet_dist_cuts: tuple[float, ...] = field(default_factory=tuple)

    # Comma-delimited allow-list of pair types; empty keeps everything
    selected_pair_types: str = ""

    centrality_estimator: str = "V0M"
    projection_rapidity_range: tuple[float, float] = (-3.999, -2.501)

    def __post_init__(self):
        """Normalize cuts and validate analysis configuration."""
        object.__setattr__(self, "tracklet_dist_cuts", normalize_dist_cuts(self.tracklet_dist_cuts))
        for cut in self.tracklet_dist_cuts:
            if cut < 0:
                raise ValueError(f"tracklet_dist_cuts must be non-negative, got {cut}")
        low, high = self.projection_rapidity_range
        if low >= high:
            raise ValueError(f"projection_rapidity_range must be increasing, got {self.projection_rapidity_range}")

    @property
    def pair_type_allow_list(self) -> frozenset[str]:
        return parse_pair_types(self.selected_pair_types)


@dataclass(frozen=True)
class SelectionConfig:
    """Configuration of the default event and muon selection."""

    # Accepted trigger classes; empty accepts any fired class
    trigger_classes: tuple[str, ...] = field(default_factory=tuple)

    # Trigger class -> minimum pt of both muons (GeV/c)
    trigger_pt_cut_levels: dict[str, float] = field(default_factory=dict)

    # Per-run overrides: run number -> {trigger class: pt cut}
    run_pt_cut_levels: dict[int, dict[str, float]] = field(default_factory=dict)

    track_eta_range: tuple[float, float] = (-4.0, -2.5)
    track_min_pt: float = 0.0
    centrality_range: tuple[float, float] = (0.0, 100.0)

    def __post_init__(self):
        """Validate selection configuration."""
        if self.track_eta_range[0] >= self.track_eta_range[1]:
            raise ValueError(f"track_eta_range must be increasing, got {self.track_eta_range}")
        if self.centrality_range[0] > self.centrality_range[1]:
            raise ValueError(f"centrality_range must be increasing, got {self.centrality_range}")
        if self.track_min_pt < 0:
            raise ValueError(f"track_min_pt must be non-negative, got {self.track_min_pt}")
        for trigger, cut in self.trigger_pt_cut_levels.items():
            if cut < 0:
                raise ValueError(f"pt cut for {trigger} must be non-negative, got {cut}")


@dataclass(frozen=True)
class ProcessingConfig:
    """Configuration of the workers and their output."""

    input_files: tuple[str, ...]
    output_dir: str

    workers: int = 4
    show_progress_bar: bool = True
    output_filename: str = "dimuon_store.npz"
    write_projections: bool = True
    projections_filename: str = "dimuon_projections.root"
    tree_name: str = "DimuonTree"

    def __post_init__(self):
        """Validate processing configuration."""
        if self.workers <= 0:
            raise ValueError(f"workers must be positive, got {self.workers}")
        if not self.output_dir:
            raise ValueError("output_dir cannot be empty")
        if not self.output_filename.endswith(".npz"):
            raise ValueError(f"output_filename must end with .npz, got {self.output_filename}")


@dataclass(frozen=True)
class PipelineConfig:
    """
    Complete pipeline configuration.

    Immutable configuration object validated at creation.
    """

    processing: ProcessingConfig
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    selection: SelectionConfig = field(default_factory=SelectionConfig)

    # Run metadata
    run_name: str = "dimuon_run"
    batch_job_index: Optional[int] = None
    total_batch_jobs: Optional[int] = None

    def __post_init__(self):
        """Validate pipeline configuration."""
        if self.batch_job_index is not None:
            if self.batch_job_index < 1:
                raise ValueError(f"batch_job_index must be positive, got {self.batch_job_index}")
            if self.total_batch_jobs is None:
                raise ValueError("total_batch_jobs required when batch_job_index is set")
            if self.batch_job_index > self.total_batch_jobs:
                raise ValueError(
                    f"batch_job_index ({self.batch_job_index}) must not exceed "
                    f"total_batch_jobs ({self.total_batch_jobs})"
                )

    @classmethod
    def from_dict(cls, config_dict: dict) -> 'PipelineConfig':
        """
        Create PipelineConfig from a dictionary (e.g., loaded from YAML).

        Args:
            config_dict: Dictionary with configuration values

        Returns:
            Validated PipelineConfig instance
        """
        analysis_dict = config_dict.get("analysis", {})
        analysis = AnalysisConfig(
            tracklet_dist_cuts=tuple(analysis_dict.get("tracklet_dist_cuts") or ()),
            selected_pair_types=analysis_dict.get("selected_pair_types") or "",
            centrality_estimator=analysis_dict.get("centrality_estimator", "V0M"),
            projection_rapidity_range=tuple(analysis_dict.get("projection_rapidity_range", (-3.999, -2.501))),
        )

        selection_dict = config_dict.get("selection", {})
        selection = SelectionConfig(
            trigger_classes=tuple(selection_dict.get("trigger_classes") or ()),
            trigger_pt_cut_levels=dict(selection_dict.get("trigger_pt_cut_levels") or {}),
            run_pt_cut_levels={
                int(run): dict(levels)
                for run, levels in (selection_dict.get("run_pt_cut_levels") or {}).items()
            },
            track_eta_range=tuple(selection_dict.get("track_eta_range", (-4.0, -2.5))),
            track_min_pt=selection_dict.get("track_min_pt", 0.0),
            centrality_range=tuple(selection_dict.get("centrality_range", (0.0, 100.0))),
        )

        processing_dict = config_dict.get("processing", {})
        processing = ProcessingConfig(
            input_files=tuple(processing_dict.get("input_files") or ()),
            output_dir=processing_dict["output_dir"],
            workers=processing_dict.get("workers", 4),
            show_progress_bar=processing_dict.get("show_progress_bar", True),
            output_filename=processing_dict.get("output_filename", "dimuon_store.npz"),
            write_projections=processing_dict.get("write_projections", True),
            projections_filename=processing_dict.get("projections_filename", "dimuon_projections.root"),
            tree_name=processing_dict.get("tree_name", "DimuonTree"),
        )

        run_metadata = config_dict.get("run_metadata", {})

        return cls(
            processing=processing,
            analysis=analysis,
            selection=selection,
            run_name=run_metadata.get("run_name", "dimuon_run"),
            batch_job_index=run_metadata.get("batch_job_index"),
            total_batch_jobs=run_metadata.get("total_batch_jobs"),
        )
