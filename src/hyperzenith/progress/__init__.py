"""
Build progress estimation from unstructured toolchain output.
"""

from .estimator import PHASE_TABLE, PhaseRule, ProgressTracker, estimate, match_phase

__all__ = [
    "PHASE_TABLE",
    "PhaseRule",
    "ProgressTracker",
    "estimate",
    "match_phase",
]
