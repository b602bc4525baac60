"""
Shared fixtures for the pipeline tests.
"""

import pytest

from domain.axes import AxesTemplate, AxisSpec, make_pair_axes
from domain.config import AnalysisConfig, PipelineConfig, ProcessingConfig, SelectionConfig
from domain.events import Event, Track, Tracklet, TruthParticle
from services.classification.ancestry import AncestryResolver
from services.histograms.factory import ObjectFactory
from services.histograms.store import MergeableStore


class FixedTypeResolver(AncestryResolver):
    """Resolver labelling every particle and pair with one fixed type."""

    def __init__(self, pair_type: str = "signal"):
        self.pair_type = pair_type

    def particle_type(self, particle, simulation):
        return self.pair_type

    def ancestor(self, particle, simulation):
        return -1

    def history(self, particle, simulation):
        return ""

    def common_ancestor(self, particle1, particle2, simulation):
        return -1

    def classify(self, entity1, entity2, ancestor, simulation):
        return self.pair_type


@pytest.fixture
def pair_axes():
    return make_pair_axes()


@pytest.fixture
def small_axes():
    """Two small axes, convenient for checking bin contents."""
    return AxesTemplate(axes=(
        AxisSpec("x", "", 4, 0.0, 4.0),
        AxisSpec("y", "", 2, -1.0, 1.0),
    ))


@pytest.fixture
def pair_store(pair_axes):
    return MergeableStore(name="test", factory=ObjectFactory(pair_axes))


@pytest.fixture
def resolver():
    return FixedTypeResolver("signal")


def make_dimuon_event(run_number=1, triggers=("trig0",), centrality=10.0,
                      charges=(1, -1), pt=2.0, tracklets=None, truth=None) -> Event:
    """Event with two muons in the spectrometer acceptance; the pair azimuth is 0.75."""
    tracks = (
        Track(pt=pt, eta=-3.0, phi=0.5, charge=charges[0]),
        Track(pt=pt, eta=-3.0, phi=1.0, charge=charges[1]),
    )
    return Event(
        run_number=run_number,
        trigger_classes=tuple(triggers),
        centrality=centrality,
        tracks=tracks,
        tracklets=tracklets,
        truth=truth,
    )


@pytest.fixture
def dimuon_event():
    return make_dimuon_event(tracklets=(Tracklet(phi=0.2, dist=0.1),))


@pytest.fixture
def pipeline_config(tmp_path):
    return PipelineConfig(
        processing=ProcessingConfig(
            input_files=(),
            output_dir=str(tmp_path / "histograms"),
            workers=1,
            show_progress_bar=False,
        ),
        analysis=AnalysisConfig(tracklet_dist_cuts=(1.0,)),
        selection=SelectionConfig(trigger_classes=("trig0",)),
    )


def truth_record():
    """
    Small generator record.

    0: proton beam, 1: B+ (521) -> 2: D0 (421) -> 3: mu+
    1 -> 4: mu-, 5: J/psi (443) -> 6: mu+, 7: mu-, 8: pi+ -> 9: mu+
    """
    return (
        TruthParticle(index=0, pdg_code=2212, pt=0.0, eta=0.0, phi=0.0, charge=1),
        TruthParticle(index=1, pdg_code=521, pt=5.0, eta=-3.0, phi=1.0, charge=1, mother=0),
        TruthParticle(index=2, pdg_code=421, pt=3.0, eta=-3.0, phi=1.0, charge=0, mother=1),
        TruthParticle(index=3, pdg_code=-13, pt=1.0, eta=-3.0, phi=1.0, charge=1, mother=2),
        TruthParticle(index=4, pdg_code=13, pt=1.0, eta=-3.1, phi=1.1, charge=-1, mother=1),
        TruthParticle(index=5, pdg_code=443, pt=2.0, eta=-3.2, phi=2.0, charge=0, mother=0),
        TruthParticle(index=6, pdg_code=-13, pt=1.0, eta=-3.2, phi=2.0, charge=1, mother=5),
        TruthParticle(index=7, pdg_code=13, pt=1.0, eta=-3.3, phi=2.1, charge=-1, mother=5),
        TruthParticle(index=8, pdg_code=211, pt=1.0, eta=-2.8, phi=3.0, charge=1, mother=0),
        TruthParticle(index=9, pdg_code=-13, pt=0.8, eta=-2.8, phi=3.0, charge=1, mother=8),
    )
