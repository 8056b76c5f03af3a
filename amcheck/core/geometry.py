"""
Periodic geometry helpers for fractional coordinates.
"""

import numpy as np

from ..utils.constants import DEFAULT_TOLERANCE


def wrap_to_cell(v, tol: float = DEFAULT_TOLERANCE) -> np.ndarray:
    """
    Bring fractional coordinates back into the home cell.
    
    Every component is reduced modulo 1 into [0, 1). A component lying within
    ``tol`` of 1 is folded to ``1 - x``, so a point just below the upper
    boundary becomes a small positive offset from 0 instead of a value
    near 1. With ``tol=0`` this is a plain modulo.
    
    Works element-wise, so ``v`` may be a single vector or any stack of them.
    
    Args:
        v: Fractional coordinates, shape (..., 3)
        tol: Boundary tolerance
        
    Returns:
        Wrapped coordinates with the same shape as ``v``
    """
    result = np.fmod(np.asarray(v, dtype=float), 1.0)
    result = np.where(result < 0, result + 1.0, result)
    
    # -1e-17 + 1.0 rounds to exactly 1.0
    result = np.where(result >= 1.0, 0.0, result)
    
    near_one = np.abs(1.0 - result) < tol
    return np.where(near_one, 1.0 - result, result)


def periodic_norm(v, tol: float = DEFAULT_TOLERANCE) -> np.ndarray:
    """Norm of a fractional displacement after wrapping into the cell."""
    return np.linalg.norm(wrap_to_cell(v, tol), axis=-1)


def is_lattice_vector(v, tol: float = DEFAULT_TOLERANCE) -> np.ndarray:
    """True where a fractional displacement is a lattice translation."""
    return periodic_norm(v, tol) < tol


def canonicalize_positions(positions) -> np.ndarray:
    """Fractional positions reduced into [0, 1)."""
    positions = np.mod(np.asarray(positions, dtype=float), 1.0)
    positions[positions >= 1.0] = 0.0
    return positions
