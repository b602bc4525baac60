"""
Persistence of mergeable stores.

A store is written as a compressed ``.npz``: one JSON manifest describing
every leaf plus, per histogram, an array of filled bin indices and one of
weights. Projections can be exported to a ROOT file with uproot.
"""
import json
import logging
import os
from pathlib import Path
from typing import Iterable

import numpy as np
import uproot

from domain.axes import AxesTemplate, AxisSpec
from domain.paths import StorePath
from services.histograms.counter import ScalarCounter
from services.histograms.factory import ObjectFactory, ObjectKind
from services.histograms.sparse_histogram import Projection, SparseHistogram
from services.histograms.store import MergeableStore

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


def _axes_to_list(template: AxesTemplate) -> list[dict]:
    return [
        {"name": a.name, "unit": a.unit, "n_bins": a.n_bins, "lower": a.lower, "upper": a.upper}
        for a in template.axes
    ]


def _axes_from_list(axes: list[dict]) -> AxesTemplate:
    return AxesTemplate(axes=tuple(AxisSpec(**a) for a in axes))


def save_store(store: MergeableStore, output_path: str) -> str:
    """
    Write ``store`` to ``output_path`` (``.npz``).

    Returns:
        The path written
    """
    os.makedirs(os.path.dirname(os.path.abspath(output_path)), exist_ok=True)

    manifest = {
        "version": FORMAT_VERSION,
        "name": store.name,
        "template": _axes_to_list(store.factory.template) if store.factory else None,
        "leaves": [],
    }
    arrays = {}

    for ileaf, ((path, kind), obj) in enumerate(store.items()):
        leaf = {"path": str(path), "kind": kind.value, "entries": obj.entries}
        if isinstance(obj, ScalarCounter):
            leaf["value"] = obj.value
        else:
            leaf["axes"] = _axes_to_list(obj.template)
            keys = list(obj.bins.keys())
            arrays[f"bins_{ileaf}"] = np.array(keys, dtype=np.int64).reshape(len(keys), obj.template.ndim)
            arrays[f"weights_{ileaf}"] = np.array([obj.bins[k] for k in keys], dtype=np.float64)
        manifest["leaves"].append(leaf)

    np.savez_compressed(output_path, manifest=np.array(json.dumps(manifest)), **arrays)
    logger.info(f"Saved store {store.name!r} with {len(store)} objects to {output_path}")
    return output_path


def load_store(input_path: str) -> MergeableStore:
    """Read a store written by ``save_store``."""
    with np.load(input_path, allow_pickle=False) as data:
        manifest = json.loads(str(data["manifest"]))
        if manifest.get("version") != FORMAT_VERSION:
            raise ValueError(f"Unsupported store format version {manifest.get('version')} in {input_path}")

        factory = None
        if manifest.get("template"):
            factory = ObjectFactory(_axes_from_list(manifest["template"]))
        store = MergeableStore(name=manifest["name"], factory=factory)

        templates: dict[str, AxesTemplate] = {}
        for ileaf, leaf in enumerate(manifest["leaves"]):
            path = StorePath.parse(leaf["path"])
            kind = ObjectKind(leaf["kind"])
            if kind == ObjectKind.EVENT_COUNTER:
                obj = ScalarCounter(value=leaf["value"], entries=leaf["entries"])
            else:
                axes_key = json.dumps(leaf["axes"])
                if axes_key not in templates:
                    template = _axes_from_list(leaf["axes"])
                    # Share one template between leaves with identical axes
                    if factory is not None and factory.template == template:
                        template = factory.template
                    templates[axes_key] = template
                obj = SparseHistogram(templates[axes_key], kind.value)
                bins = data[f"bins_{ileaf}"]
                weights = data[f"weights_{ileaf}"]
                obj.bins = {tuple(int(i) for i in key): float(w) for key, w in zip(bins, weights)}
                obj.entries = leaf["entries"]
            store.adopt(path, obj)

    logger.info(f"Loaded store {store.name!r} with {len(store)} objects from {input_path}")
    return store


def find_batch_stores(directory: str, pattern: str = "batch_*.npz") -> list[str]:
    return [str(p) for p in sorted(Path(directory).glob(pattern))]


def write_projections_root(projections: Iterable[tuple[str, Projection]], output_path: str) -> int:
    """
    Write 1-D projections as TH1 histograms into a new ROOT file.

    Returns:
        Number of histograms written
    """
    os.makedirs(os.path.dirname(os.path.abspath(output_path)), exist_ok=True)
    written = 0
    with uproot.recreate(output_path) as root_file:
        for name, projection in projections:
            root_file[name] = projection.to_numpy()
            written += 1
    logger.info(f"Wrote {written} projections to {output_path}")
    return written
