"""
Physics calculations for particle pairs.

Builds Lorentz vectors with ``vector`` and derives the pair observables
filled into the histograms.
"""
import math

import vector

from domain.events import PairSample


def to_momentum_vector(particle) -> vector.MomentumObject4D:
    return vector.obj(pt=particle.pt, eta=particle.eta, phi=particle.phi, mass=particle.mass)


def normalize_phi(phi: float) -> float:
    """Map an azimuth to [0, 2pi)."""
    phi = math.fmod(phi, 2. * math.pi)
    if phi < 0.:
        phi += 2. * math.pi
    if phi >= 2. * math.pi:
        phi = 0.
    return phi


def calc_pair_sample(particle1, particle2) -> PairSample:
    """Transverse momentum, rapidity, azimuth and invariant mass of a pair."""
    pair = to_momentum_vector(particle1) + to_momentum_vector(particle2)
    return PairSample(
        pt=float(pair.pt),
        rapidity=float(pair.rapidity),
        phi=normalize_phi(float(pair.phi)),
        inv_mass=float(pair.mass),
    )


def charge_product(particle1, particle2) -> int:
    return particle1.charge * particle2.charge
