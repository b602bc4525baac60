"""
Tests for MergeableStore, its persistence and the merge stage.
"""

import logging
from unittest.mock import Mock

import numpy as np
import pytest
import uproot

from domain.axes import AxesTemplate, AxisSpec
from domain.paths import StorePath
from services.histograms import (
    AxisMismatchError,
    KindMismatchError,
    MergeableStore,
    ObjectFactory,
    ObjectKind,
    ScalarCounter,
    SparseHistogram,
    UnknownObjectRequest,
)
from services.histograms.store_io import find_batch_stores, load_store, save_store, write_projections_root
from services.processing.merging import merge_stores, tree_merge_stores

SIGNAL_OS = "/trig0/none/signal/OS"
SAMPLE = (2.0, -3.0, 1.0, 3.1, 15.0, 4.0)


def store_with(factory, fills):
    """Store with one fill per ``(path, sample)`` and one event counted per trigger path."""
    store = MergeableStore(factory=factory)
    for path, sample in fills:
        store.resolve(path, ObjectKind.PAIR_HISTOGRAM).fill(sample)
        store.resolve(StorePath.parse(path).segments[0], ObjectKind.EVENT_COUNTER).fill()
    return store


@pytest.fixture
def factory(pair_axes):
    return ObjectFactory(pair_axes)


class TestFactory:
    """Tests for ObjectFactory."""

    def test_create_by_name(self, factory):
        assert isinstance(factory.create("pair_sparse"), SparseHistogram)
        assert isinstance(factory.create("nevents"), ScalarCounter)

    def test_histograms_share_template(self, factory):
        assert factory.create(ObjectKind.PAIR_HISTOGRAM).template is factory.create(ObjectKind.PAIR_HISTOGRAM).template

    def test_unknown_name(self, factory):
        with pytest.raises(UnknownObjectRequest, match="bogus"):
            factory.create("bogus")


class TestResolve:
    """Tests for on-demand object creation."""

    def test_resolve_creates_once(self, pair_store):
        first = pair_store.resolve(SIGNAL_OS, ObjectKind.PAIR_HISTOGRAM)
        second = pair_store.resolve(StorePath.parse(SIGNAL_OS), "pair_sparse")
        assert first is second
        assert len(pair_store) == 1

    def test_same_path_different_kinds(self, pair_store):
        histogram = pair_store.resolve("/trig0", ObjectKind.PAIR_HISTOGRAM)
        counter = pair_store.resolve("/trig0", ObjectKind.EVENT_COUNTER)
        assert isinstance(histogram, SparseHistogram)
        assert isinstance(counter, ScalarCounter)
        assert len(pair_store) == 2

    def test_unknown_kind_leaves_store_unchanged(self, pair_store, caplog):
        """Test that an unknown object request is logged and creates nothing."""
        with caplog.at_level(logging.ERROR):
            assert pair_store.resolve(SIGNAL_OS, "bogus") is None
        assert pair_store.is_empty()
        assert "bogus" in caplog.text

    def test_resolve_without_factory_fails(self):
        with pytest.raises(ValueError, match="no factory"):
            MergeableStore().resolve("/trig0", ObjectKind.EVENT_COUNTER)

    def test_get_does_not_create(self, pair_store):
        assert pair_store.get(SIGNAL_OS, ObjectKind.PAIR_HISTOGRAM) is None
        assert pair_store.get(SIGNAL_OS, "bogus") is None
        assert pair_store.is_empty()

    def test_adopt_existing_key_fails(self, pair_store, pair_axes):
        pair_store.resolve(SIGNAL_OS, ObjectKind.PAIR_HISTOGRAM)
        with pytest.raises(KeyError):
            pair_store.adopt(SIGNAL_OS, SparseHistogram(pair_axes))

    def test_list_keys(self, factory):
        store = store_with(factory, [
            ("/trig0/none/signal/OS", SAMPLE),
            ("/trig1/dist_1/Charm/SS", SAMPLE),
        ])
        assert store.list_keys(0) == ["trig0", "trig1"]
        assert store.list_keys(1) == ["dist_1", "none"]
        assert store.list_keys(3) == ["OS", "SS"]
        assert store.list_keys(4) == []

    def test_paths_and_histograms(self, factory):
        store = store_with(factory, [(SIGNAL_OS, SAMPLE)])
        assert store.paths(ObjectKind.EVENT_COUNTER) == [StorePath.of("trig0")]
        assert [str(path) for path, _ in store.histograms()] == [SIGNAL_OS]

    def test_estimate_size_grows(self, pair_store):
        empty_size = pair_store.estimate_size()
        pair_store.resolve(SIGNAL_OS, ObjectKind.PAIR_HISTOGRAM).fill(SAMPLE)
        assert pair_store.estimate_size() > empty_size

    def test_size_only_computed_for_info_log(self, pair_store, caplog):
        """Test that the store is not walked when the size line is not printed."""
        pair_store.estimate_size = Mock(return_value=0)

        with caplog.at_level(logging.WARNING, logger="MergeableStore"):
            pair_store.resolve(SIGNAL_OS, ObjectKind.PAIR_HISTOGRAM)
        pair_store.estimate_size.assert_not_called()

        with caplog.at_level(logging.INFO, logger="MergeableStore"):
            pair_store.resolve("/trig0", ObjectKind.EVENT_COUNTER)
        pair_store.estimate_size.assert_called_once()
        assert "collection size" in caplog.text


class TestStoreMerge:
    """Tests for store merging."""

    def test_two_workers_same_path(self, factory):
        """Test that one fill from each of two workers sums to weight 2."""
        worker1 = store_with(factory, [(SIGNAL_OS, SAMPLE)])
        worker2 = store_with(factory, [(SIGNAL_OS, SAMPLE)])

        merged = merge_stores([worker1, worker2])

        histogram = merged.get(SIGNAL_OS, ObjectKind.PAIR_HISTOGRAM)
        assert histogram.sum_of_weights == 2.0
        assert merged.get("/trig0", ObjectKind.EVENT_COUNTER).value == 2.0

    def test_merge_moves_missing_paths(self, factory):
        a = store_with(factory, [(SIGNAL_OS, SAMPLE)])
        b = store_with(factory, [("/trig1/none/signal/SS", SAMPLE)])
        a.merge(b)
        assert len(a) == 4
        assert b.is_empty()

    def test_merge_is_commutative(self, factory):
        fills_a = [(SIGNAL_OS, SAMPLE), ("/trig1/none/Charm/SS", SAMPLE)]
        fills_b = [(SIGNAL_OS, (5.0, -3.5, 2.0, 9.4, 55.0, 10.0))]
        ab = store_with(factory, fills_a).merge(store_with(factory, fills_b))
        ba = store_with(factory, fills_b).merge(store_with(factory, fills_a))
        assert ab == ba

    def test_merge_is_associative(self, factory):
        fills = [
            [(SIGNAL_OS, SAMPLE)],
            [("/trig1/none/Charm/SS", SAMPLE)],
            [(SIGNAL_OS, SAMPLE), ("/trig0/dist_1/signal/OS", SAMPLE)],
        ]
        left = store_with(factory, fills[0]).merge(store_with(factory, fills[1])).merge(store_with(factory, fills[2]))
        right = store_with(factory, fills[0]).merge(store_with(factory, fills[1]).merge(store_with(factory, fills[2])))
        assert left == right

    def test_empty_store_is_identity(self, factory):
        a = store_with(factory, [(SIGNAL_OS, SAMPLE)])
        reference = store_with(factory, [(SIGNAL_OS, SAMPLE)])
        assert a.merge(MergeableStore(factory=factory)) == reference
        assert MergeableStore(factory=factory).merge(store_with(factory, [(SIGNAL_OS, SAMPLE)])) == reference

    def test_merge_into_itself_fails(self, pair_store):
        with pytest.raises(ValueError):
            pair_store.merge(pair_store)

    def test_axis_mismatch_aborts_before_changes(self, factory):
        """Test that an incompatible leaf aborts the merge with nothing modified."""
        other_factory = ObjectFactory(AxesTemplate(axes=(AxisSpec("x", "", 2, 0.0, 1.0),)))
        a = store_with(factory, [(SIGNAL_OS, SAMPLE)])
        b = MergeableStore(factory=other_factory)
        b.resolve("/trig9", ObjectKind.EVENT_COUNTER).fill()
        b.resolve(SIGNAL_OS, ObjectKind.PAIR_HISTOGRAM).fill((0.5,))

        with pytest.raises(AxisMismatchError, match="/trig0/none/signal/OS"):
            a.merge(b)
        assert len(a) == 2
        assert len(b) == 2
        assert a.get("/trig9", ObjectKind.EVENT_COUNTER) is None

    def test_kind_mismatch(self, factory, pair_axes):
        a = MergeableStore(factory=factory)
        a.adopt("/trig0", ScalarCounter(1.0, 1))
        b = MergeableStore(factory=factory)
        b._objects[(StorePath.of("trig0"), ObjectKind.EVENT_COUNTER)] = SparseHistogram(pair_axes)
        with pytest.raises(KindMismatchError):
            a.merge(b)

    def test_tree_merge_matches_fold(self, factory):
        fills = [[(SIGNAL_OS, SAMPLE), (f"/trig{i}/none/signal/SS", SAMPLE)] for i in range(5)]
        folded = merge_stores([store_with(factory, f) for f in fills])
        tree = tree_merge_stores([store_with(factory, f) for f in fills])
        assert folded == tree
        assert folded.get(SIGNAL_OS, ObjectKind.PAIR_HISTOGRAM).sum_of_weights == 5.0

    def test_merge_nothing(self):
        assert merge_stores([], name="empty").is_empty()
        assert tree_merge_stores([]).is_empty()


class TestStoreIO:
    """Tests for saving and loading stores."""

    def test_round_trip(self, factory, tmp_path):
        store = store_with(factory, [(SIGNAL_OS, SAMPLE), ("/trig1/none/Charm/SS", SAMPLE)])
        store.resolve(SIGNAL_OS, ObjectKind.PAIR_HISTOGRAM).fill(SAMPLE, 0.5)
        path = save_store(store, str(tmp_path / "store.npz"))

        loaded = load_store(path)

        assert loaded == store
        assert loaded.name == store.name
        assert loaded.factory.template == factory.template
        histogram = loaded.get(SIGNAL_OS, ObjectKind.PAIR_HISTOGRAM)
        assert histogram.template is loaded.factory.template
        assert histogram.sum_of_weights == 1.5

    def test_loaded_stores_merge(self, factory, tmp_path):
        save_store(store_with(factory, [(SIGNAL_OS, SAMPLE)]), str(tmp_path / "batch_1.npz"))
        save_store(store_with(factory, [(SIGNAL_OS, SAMPLE)]), str(tmp_path / "batch_2.npz"))
        save_store(MergeableStore(factory=factory), str(tmp_path / "merged.npz"))

        files = find_batch_stores(str(tmp_path))
        assert [f.rsplit("/", 1)[-1] for f in files] == ["batch_1.npz", "batch_2.npz"]

        merged = merge_stores([load_store(f) for f in files])
        assert merged.get(SIGNAL_OS, ObjectKind.PAIR_HISTOGRAM).sum_of_weights == 2.0

    def test_empty_store_round_trip(self, factory, tmp_path):
        path = save_store(MergeableStore(factory=factory), str(tmp_path / "empty.npz"))
        assert load_store(path).is_empty()

    def test_write_projections(self, factory, tmp_path):
        histogram = store_with(factory, [(SIGNAL_OS, SAMPLE)]).get(SIGNAL_OS, ObjectKind.PAIR_HISTOGRAM)
        output = str(tmp_path / "projections.root")

        written = write_projections_root([("trig0_none_OS_signal_proj0", histogram.project(0))], output)

        assert written == 1
        with uproot.open(output) as root_file:
            counts, edges = root_file["trig0_none_OS_signal_proj0"].to_numpy()
        assert counts.sum() == 1.0
        assert np.allclose(edges, factory.template.edges[0])
