"""
EventReader service - Turns stored events into ``Event`` objects.

Reads parquet files with awkward or flat ROOT trees with uproot. ROOT
branches are grouped into collections by prefix (``tracks_pt`` ->
``tracks.pt``), the same way object branches are zipped when parsing.
"""

import logging
from typing import Iterator

import awkward as ak
import uproot

from domain.events import Event, Track, Tracklet, TruthParticle

COLLECTION_PREFIXES = ("tracks", "tracklets", "truth")
EVENT_FIELDS = ("run_number", "centrality", "trigger_classes")

TRACK_FIELDS = ("pt", "eta", "phi", "charge", "mass", "label", "pdg_code", "status_code")
TRUTH_FIELDS = ("index", "pdg_code", "pt", "eta", "phi", "charge", "mass", "mother", "status_code")


class EventReader:
    """
    Service reading events from files.

    Pure function-like service with no state apart from the tree name.
    """

    def __init__(self, tree_name: str = "DimuonTree", batch_size: int = 40_000):
        self.tree_name = tree_name
        self.batch_size = batch_size
        self.logger = logging.getLogger(self.__class__.__name__)

    def read_file(self, file_path: str) -> Iterator[Event]:
        """
        Yield the events of one file, in file order.

        Args:
            file_path: Path to a ``.parquet`` or ``.root`` file

        Raises:
            ValueError: If the file type is not supported
        """
        if file_path.endswith(".parquet"):
            yield from self.events_from_array(ak.from_parquet(file_path))
        elif file_path.endswith(".root"):
            for batch in self._iterate_root(file_path):
                yield from self.events_from_array(batch)
        else:
            raise ValueError(f"Unsupported input file type: {file_path}")

    def _iterate_root(self, file_path: str) -> Iterator[ak.Array]:
        with uproot.open(file_path) as root_file:
            tree = root_file[self.tree_name]
            branches = set(tree.keys())
            n_entries = tree.num_entries
            for entry_start in range(0, n_entries, self.batch_size):
                entry_stop = min(entry_start + self.batch_size, n_entries)
                batch = tree.arrays(branches, entry_start=entry_start, entry_stop=entry_stop, library="ak")
                yield self.group_branches(batch)

    @staticmethod
    def group_branches(flat: ak.Array) -> ak.Array:
        """Zip ``<collection>_<field>`` branches into per-collection records."""
        grouped = {}
        for name in EVENT_FIELDS:
            if name in flat.fields:
                grouped[name] = flat[name]

        for prefix in COLLECTION_PREFIXES:
            members = {
                field[len(prefix) + 1:]: flat[field]
                for field in flat.fields if field.startswith(f"{prefix}_")
            }
            if members:
                grouped[prefix] = ak.zip(members)

        return ak.zip(grouped, depth_limit=1)

    def events_from_array(self, events: ak.Array) -> Iterator[Event]:
        """Convert an awkward array of event records, one record at a time."""
        for record in ak.to_list(events):
            yield self.event_from_record(record)

    @staticmethod
    def event_from_record(record: dict) -> Event:
        tracklets = record.get("tracklets")
        truth = record.get("truth")
        return Event(
            run_number=int(record.get("run_number", 0)),
            trigger_classes=tuple(record.get("trigger_classes") or ()),
            centrality=float(record.get("centrality", 0.0)),
            tracks=tuple(
                Track(**{k: v for k, v in track.items() if k in TRACK_FIELDS and v is not None})
                for track in record.get("tracks") or ()
            ),
            tracklets=None if tracklets is None else tuple(
                Tracklet(phi=t["phi"], dist=t["dist"]) for t in tracklets
            ),
            truth=None if truth is None else tuple(
                _truth_particle(index, particle) for index, particle in enumerate(truth)
            ),
        )


def _truth_particle(index: int, particle: dict) -> TruthParticle:
    values = {k: v for k, v in particle.items() if k in TRUTH_FIELDS and v is not None}
    # Mother links and track labels refer to positions in the truth list
    values["index"] = index
    return TruthParticle(**values)
