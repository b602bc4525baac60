"""
Centralized constants for the pair calculations.
"""
import math

MUON_MASS = 0.1056583755  # GeV/c^2
MUON_PDG = 13

# Tracklets farther than this in azimuth from the pair are not counted
TRACKLET_PHI_WINDOW = math.pi / 2.

# Truth-level muon acceptance of the forward spectrometer
TRUTH_ETA_RANGE = (-4.0, -2.5)
TRUTH_MAX_STATUS_CODE = 10
