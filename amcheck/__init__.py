"""
AMCheck: symmetry-based detection of altermagnetism.

Decides whether a collinear spin configuration on a crystal structure is
altermagnetic, and searches the spin configurations of the magnetic
sublattice for altermagnetic ones.
"""

__version__ = "0.1.0"

from . import core
from . import analysis
from . import utils

# Note: IO functionality is available in utils.io module

from .core import (
    SpinState,
    SymmetryOperation,
    CrystalStructure,
    AltermagnetClassifier,
    Verdict,
    UnbalancedSpinError,
    IllPosedStructureError,
    is_altermagnet,
    is_orbit_altermagnetic,
    wrap_to_cell,
    ConfigurationSearch,
    SearchResult,
    AcceleratorUnavailableError,
)
from .analysis import analyze_anomalous_hall, analyze_band_file

# Performance utilities
from .core.fast_ops import check_numba_availability

__all__ = [
    "SpinState",
    "SymmetryOperation",
    "CrystalStructure",
    "AltermagnetClassifier",
    "Verdict",
    "UnbalancedSpinError",
    "IllPosedStructureError",
    "is_altermagnet",
    "is_orbit_altermagnetic",
    "wrap_to_cell",
    "ConfigurationSearch",
    "SearchResult",
    "AcceleratorUnavailableError",
    "analyze_anomalous_hall",
    "analyze_band_file",
    "check_numba_availability",
    "core",
    "analysis",
    "utils"
]
