"""
Selection services.

Event, particle and pair acceptance.
"""

from .muon_selection import SelectionAuthority, MuonSelection, is_truth_muon_selected

__all__ = ["SelectionAuthority", "MuonSelection", "is_truth_muon_selected"]
