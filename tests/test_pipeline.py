"""
Tests for workers, the state machine and the pipeline executor.

Input files are small parquet files written with awkward.
"""

import json
import os
from dataclasses import FrozenInstanceError, replace
from unittest.mock import Mock

import awkward as ak
import pytest

from domain.config import PipelineConfig, ProcessingConfig
from domain.statistics import ProcessingStatistics
from orchestration import PipelineContext, PipelineState, StateMachine
from orchestration.handlers import MergingHandler, OutputHandler, ProcessingHandler, StateHandler
from orchestration.states import is_valid_transition
from pipeline.executor import PipelineExecutor
from services.histograms import ObjectKind
from services.histograms.store_io import load_store
from services.parsing.event_reader import EventReader
from services.processing import ParallelProcessor, Worker, create_store
from services.processing.event_states import EventState, is_valid_event_transition
from services.selection import MuonSelection
from utils.batching import get_batch_slice
from utils.paths import update_config_paths_with_run_dir
import main as cli
from conftest import make_dimuon_event

UNIDENTIFIED_OS = "/trig0/none/Unidentified/OS"


def event_record(run_number=1, triggers=("trig0",), centrality=10.0):
    return {
        "run_number": run_number,
        "centrality": centrality,
        "trigger_classes": list(triggers),
        "tracks": [
            {"pt": 2.0, "eta": -3.0, "phi": 0.5, "charge": 1},
            {"pt": 2.0, "eta": -3.0, "phi": 1.0, "charge": -1},
        ],
        "tracklets": [{"phi": 0.7, "dist": 0.2}],
    }


def write_events(path, records) -> str:
    ak.to_parquet(ak.Array(records), str(path))
    return str(path)


@pytest.fixture
def input_files(tmp_path):
    return [
        write_events(tmp_path / "events_0.parquet", [event_record(), event_record(triggers=("other",))]),
        write_events(tmp_path / "events_1.parquet", [event_record(run_number=2)]),
    ]


def with_processing(config, **changes):
    return replace(config, processing=replace(config.processing, **changes))


class TestStates:
    """Tests for state transitions."""

    def test_pipeline_transitions(self):
        assert is_valid_transition(PipelineState.IDLE, PipelineState.PROCESSING)
        assert is_valid_transition(PipelineState.IDLE, PipelineState.MERGING)
        assert is_valid_transition(PipelineState.MERGING, PipelineState.WRITING_OUTPUT)
        assert not is_valid_transition(PipelineState.PROCESSING, PipelineState.COMPLETED)
        assert not is_valid_transition(PipelineState.COMPLETED, PipelineState.IDLE)

    def test_terminal_states(self):
        assert PipelineState.COMPLETED.is_terminal()
        assert PipelineState.FAILED.is_terminal()
        assert not PipelineState.MERGING.is_terminal()

    def test_event_transitions(self):
        assert is_valid_event_transition(EventState.IDLE, EventState.PER_EVENT_SELECTION)
        assert is_valid_event_transition(EventState.PER_EVENT_SELECTION, EventState.IDLE)
        assert is_valid_event_transition(EventState.DISPATCH, EventState.PAIR_ENUMERATION)
        assert not is_valid_event_transition(EventState.IDLE, EventState.DISPATCH)


class TestBatching:
    """Tests for batch slicing."""

    def test_slices_cover_items(self):
        items = list(range(10))
        slices = [get_batch_slice(items, i, 3) for i in (1, 2, 3)]
        assert slices == [[0, 1, 2], [3, 4, 5], [6, 7, 8, 9]]

    def test_bad_index(self):
        with pytest.raises(ValueError, match="batch_index must be"):
            get_batch_slice([1, 2], 0, 2)

    def test_empty_items(self):
        assert get_batch_slice([], 1, 2) == []


class TestEventReader:
    """Tests for reading event files."""

    def test_read_parquet(self, input_files):
        events = list(EventReader().read_file(input_files[0]))
        assert len(events) == 2
        assert events[0].run_number == 1
        assert events[0].trigger_classes == ("trig0",)
        assert events[0].tracks[1].charge == -1
        assert events[0].tracklets[0].dist == pytest.approx(0.2)
        assert events[0].truth is None

    def test_unsupported_file(self):
        with pytest.raises(ValueError, match="Unsupported input file type"):
            list(EventReader().read_file("events.csv"))

    def test_group_branches(self):
        flat = ak.Array({
            "run_number": [7],
            "centrality": [5.0],
            "tracks_pt": [[1.0, 2.0]],
            "tracks_eta": [[-3.0, -3.1]],
            "tracks_phi": [[0.1, 0.2]],
            "tracks_charge": [[1, -1]],
        })
        grouped = EventReader.group_branches(flat)
        event = next(EventReader().events_from_array(grouped))
        assert event.run_number == 7
        assert [t.pt for t in event.tracks] == [1.0, 2.0]
        assert event.tracklets is None

    def test_truth_indices_follow_position(self):
        record = event_record()
        record["truth"] = [
            {"index": 5, "pdg_code": 443, "pt": 1.0, "eta": -3.0, "phi": 0.0, "charge": 0, "mother": -1},
            {"index": 9, "pdg_code": 13, "pt": 1.0, "eta": -3.0, "phi": 0.0, "charge": -1, "mother": 0},
        ]
        event = EventReader.event_from_record(record)
        assert [p.index for p in event.truth] == [0, 1]
        assert event.truth[1].mother == 0


class TestWorker:
    """Tests for Worker and ParallelProcessor."""

    def test_worker_processes_events(self, pipeline_config):
        worker = Worker(pipeline_config)
        result = worker.run(events=[make_dimuon_event(), make_dimuon_event(triggers=("other",))])

        assert result.statistics.events_seen == 2
        assert result.statistics.events_selected == 1
        assert result.store.get(UNIDENTIFIED_OS, ObjectKind.PAIR_HISTOGRAM).entries == 1
        assert worker.store is None

    def test_worker_runs_once(self, pipeline_config):
        worker = Worker(pipeline_config)
        worker.run()
        with pytest.raises(RuntimeError, match="already run"):
            worker.run()

    def test_worker_survives_bad_file(self, pipeline_config, input_files, tmp_path):
        bad_file = tmp_path / "broken.parquet"
        bad_file.write_text("not parquet")

        result = Worker(pipeline_config).run([str(bad_file), input_files[0]])

        assert result.statistics.files_failed == 1
        assert result.statistics.files_processed == 1
        assert result.failed_files[0][0] == str(bad_file)
        assert result.statistics.events_seen == 2

    def test_worker_survives_selection_errors(self, pipeline_config):
        selection = MuonSelection(pipeline_config.selection)
        selection.pair_passes_trigger_cut = Mock(side_effect=RuntimeError("pt cut table missing"))

        result = Worker(pipeline_config, selection=selection).run(events=[make_dimuon_event(), make_dimuon_event()])

        assert result.statistics.events_selected == 2
        assert result.statistics.skipped_pairs == 2
        assert result.store.paths(ObjectKind.PAIR_HISTOGRAM) == []

    def test_split_files(self, pipeline_config):
        processor = ParallelProcessor(with_processing(pipeline_config, workers=3))
        files = [f"f{i}.parquet" for i in range(4)]
        slices = processor.split_files(files)
        assert len(slices) == 3
        assert sorted(f for s in slices for f in s) == files
        assert ParallelProcessor(with_processing(pipeline_config, workers=8)).split_files(files[:2]) == [
            ["f0.parquet"], ["f1.parquet"]
        ]

    def test_no_files(self, pipeline_config):
        assert list(ParallelProcessor(pipeline_config).process_files([])) == []

    def test_two_worker_processes(self, pipeline_config, input_files):
        """Test that two worker processes each return their own store."""
        processor = ParallelProcessor(with_processing(pipeline_config, workers=2))
        results = sorted(processor.process_files(input_files), key=lambda r: r.worker_index)

        assert [r.worker_index for r in results] == [1, 2]
        assert [r.statistics.events_seen for r in results] == [2, 1]
        for result in results:
            assert result.store.get(UNIDENTIFIED_OS, ObjectKind.PAIR_HISTOGRAM).entries == 1


class TestStateMachine:
    """Tests for the state machine."""

    def test_missing_handler_fails(self, pipeline_config):
        machine = StateMachine({})
        context = machine.run(PipelineContext(config=pipeline_config, current_state=PipelineState.IDLE))
        assert context.has_error
        assert "No handler" in context.error_message

    def test_handler_error_fails_pipeline(self, pipeline_config):
        handler = Mock(spec=StateHandler)
        handler.handle.side_effect = RuntimeError("boom")
        machine = StateMachine({PipelineState.PROCESSING: handler})

        context = machine.run(PipelineContext(config=pipeline_config, current_state=PipelineState.IDLE))

        assert context.current_state == PipelineState.FAILED
        assert "boom" in context.error_message

    def test_invalid_transition_fails(self, pipeline_config):
        handler = Mock(spec=StateHandler)
        handler.handle.side_effect = lambda ctx: (ctx, PipelineState.COMPLETED)
        machine = StateMachine({PipelineState.PROCESSING: handler})

        context = machine.run(PipelineContext(config=pipeline_config, current_state=PipelineState.PROCESSING))

        assert context.has_error
        assert "Invalid state transition" in context.error_message

    def test_merging_without_stores(self, pipeline_config):
        context = PipelineContext(config=pipeline_config, current_state=PipelineState.MERGING)
        updated, next_state = MergingHandler().handle(context)
        assert next_state == PipelineState.WRITING_OUTPUT
        assert updated.merged_store.is_empty()
        assert updated.merged_store.factory is not None

    def test_processing_handler_combines_statistics(self, pipeline_config, input_files):
        config = with_processing(pipeline_config, input_files=tuple(input_files))
        context = PipelineContext(config=config, current_state=PipelineState.PROCESSING)

        updated, next_state = ProcessingHandler(ParallelProcessor(config)).handle(context)

        assert next_state == PipelineState.MERGING
        assert updated.input_files == input_files
        assert len(updated.worker_stores) == 1
        assert updated.processing_stats.events_seen == 3
        assert updated.processing_stats.files_processed == 2

    def test_output_handler_needs_store(self, pipeline_config):
        context = PipelineContext(config=pipeline_config, current_state=PipelineState.WRITING_OUTPUT)
        with pytest.raises(RuntimeError, match="No merged store"):
            OutputHandler().handle(context)

    def test_context_is_immutable(self, pipeline_config):
        context = PipelineContext(config=pipeline_config, current_state=PipelineState.IDLE)
        updated = context.with_processing_stats(ProcessingStatistics())
        assert context.processing_stats is None
        assert updated.processing_stats is not None
        with pytest.raises(FrozenInstanceError):
            context.current_state = PipelineState.FAILED


class TestPipelineExecutor:
    """End-to-end tests of the executor."""

    def test_single_job(self, pipeline_config, input_files):
        config = with_processing(pipeline_config, input_files=tuple(input_files))

        context = PipelineExecutor(config).run()

        assert context.is_successful
        store_path = os.path.join(config.processing.output_dir, config.processing.output_filename)
        projections_path = os.path.join(config.processing.output_dir, config.processing.projections_filename)
        assert context.output_files == [store_path, projections_path]

        store = load_store(store_path)
        assert store.get(UNIDENTIFIED_OS, ObjectKind.PAIR_HISTOGRAM).sum_of_weights == 2.0
        assert store.get("/trig0", ObjectKind.EVENT_COUNTER).value == 2.0
        assert store.list_keys(1) == ["dist_1", "none"]

    def test_no_input_still_writes_store(self, pipeline_config):
        context = PipelineExecutor(with_processing(pipeline_config, write_projections=False)).run()
        assert context.is_successful
        assert load_store(context.output_files[0]).is_empty()

    def test_batch_jobs_then_merge(self, pipeline_config, input_files, tmp_path):
        """Test that merging batch outputs gives the single-job result."""
        run_dir = str(tmp_path)
        config = with_processing(pipeline_config, input_files=tuple(input_files))

        for index in (1, 2):
            batch_config = replace(config, batch_job_index=index, total_batch_jobs=2)
            executor = PipelineExecutor(batch_config)
            context = executor.run()
            assert context.is_successful
            assert context.output_files == [os.path.join(config.processing.output_dir, f"batch_{index}.npz")]
            executor.save_batch_stats(run_dir, index, context)

        merged_context = PipelineExecutor(config).merge_outputs(run_dir)

        assert merged_context.is_successful
        merged = load_store(merged_context.output_files[0])
        assert merged.get(UNIDENTIFIED_OS, ObjectKind.PAIR_HISTOGRAM).sum_of_weights == 2.0

        with open(os.path.join(run_dir, "logs", "aggregated_stats.json")) as f:
            aggregated = json.load(f)
        assert aggregated["num_batches"] == 2
        assert aggregated["processing_totals"]["events_seen"] == 3

    def test_from_yaml_dict(self, tmp_path, input_files):
        config = PipelineConfig.from_dict({
            "processing": {
                "input_files": input_files,
                "output_dir": str(tmp_path / "out"),
                "workers": 1,
                "show_progress_bar": False,
            },
            "analysis": {"tracklet_dist_cuts": [0.5]},
        })
        context = PipelineExecutor(config).run()
        assert context.is_successful
        assert isinstance(config.processing, ProcessingConfig)
        assert create_store(config).factory.template.ndim == 6


class TestCommandLine:
    """Tests for argument parsing and the entry point."""

    def test_batch_index_needs_total(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["--batch-job-index", "1"])

    def test_merge_only_needs_run_dir(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["--merge-only"])

    def test_merge_only_excludes_batch_index(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["--merge-only", "--run-dir", "x", "--batch-job-index", "1", "--total-batch-jobs", "2"])

    def test_batch_arguments(self):
        args = cli.parse_args(["--batch-job-index", "2", "--total-batch-jobs", "4", "--run-dir", "runs/a"])
        assert (args.batch_job_index, args.total_batch_jobs, args.run_dir) == (2, 4, "runs/a")
        assert not args.merge_only

    def test_relative_output_dir_moves_into_run_dir(self, tmp_path):
        run_dir = str(tmp_path / "run")
        updated = update_config_paths_with_run_dir({"processing": {"output_dir": "out"}}, run_dir)
        assert updated["processing"]["output_dir"] == os.path.join(run_dir, "histograms")
        assert os.path.isdir(os.path.join(run_dir, "logs"))

    def test_absolute_output_dir_kept(self, tmp_path):
        absolute = str(tmp_path / "elsewhere")
        updated = update_config_paths_with_run_dir({"processing": {"output_dir": absolute}}, str(tmp_path))
        assert updated["processing"]["output_dir"] == absolute

    def test_dry_run(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text("processing:\n  output_dir: histograms\n  input_files: []\n")
        run_dir = tmp_path / "run"

        status = cli.main(["--config", str(config_path), "--run-dir", str(run_dir), "--dry-run"])

        assert status == 0
        assert not os.listdir(run_dir / "histograms")

    def test_batch_then_merge(self, tmp_path, input_files):
        """Test two batch jobs followed by the merge job through the entry point."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text(
            "processing:\n"
            "  output_dir: histograms\n"
            "  workers: 1\n"
            "  show_progress_bar: false\n"
            f"  input_files: [{input_files[0]!r}, {input_files[1]!r}]\n"
            "selection:\n"
            "  trigger_classes: [trig0]\n"
        )
        run_dir = str(tmp_path / "run")

        for index in ("1", "2"):
            assert cli.main([
                "--config", str(config_path), "--run-dir", run_dir,
                "--batch-job-index", index, "--total-batch-jobs", "2",
            ]) == 0
        assert cli.main(["--config", str(config_path), "--run-dir", run_dir, "--merge-only"]) == 0

        merged = load_store(os.path.join(run_dir, "histograms", "dimuon_store.npz"))
        assert merged.get(UNIDENTIFIED_OS, ObjectKind.PAIR_HISTOGRAM).sum_of_weights == 2.0
        assert os.path.exists(os.path.join(run_dir, "histograms", "dimuon_projections.root"))
        assert os.path.exists(os.path.join(run_dir, "logs", "aggregated_stats.json"))
