"""Core classification and search functionality."""

from .geometry import wrap_to_cell
from .structure import SpinState, SymmetryOperation, CrystalStructure
from .classifier import (
    AltermagnetClassifier,
    Verdict,
    UnbalancedSpinError,
    IllPosedStructureError,
    is_altermagnet,
    is_orbit_altermagnetic,
)
from .backends import SearchBackend, CPUBackend, NumbaBackend, AcceleratorUnavailableError
from .search import ConfigurationSearch, SearchResult

__all__ = [
    "wrap_to_cell",
    "SpinState",
    "SymmetryOperation",
    "CrystalStructure",
    "AltermagnetClassifier",
    "Verdict",
    "UnbalancedSpinError",
    "IllPosedStructureError",
    "is_altermagnet",
    "is_orbit_altermagnetic",
    "SearchBackend",
    "CPUBackend",
    "NumbaBackend",
    "AcceleratorUnavailableError",
    "ConfigurationSearch",
    "SearchResult"
]
