"""
Symmetry analysis of the anomalous Hall conductivity.

The magnetic point group of a collinear configuration is split into
operations that keep every spin (no time reversal) and operations that
flip every spin (combined with time reversal). Averaging a generic seed
tensor over that group leaves only the symmetry-allowed components; the
antisymmetric part is the anomalous Hall response.
"""

import numpy as np
from typing import Any, Dict, List, Sequence, Tuple

from ..core.geometry import is_lattice_vector
from ..core.structure import CrystalStructure
from ..utils.constants import CONDUCTIVITY_SEED, DEFAULT_TOLERANCE


# Label order used when naming independent tensor components
TENSOR_LABELS = ("xx", "yy", "zz", "yz", "xz", "xy", "zy", "zx", "yx")
TENSOR_INDICES = ((0, 0), (1, 1), (2, 2), (1, 2), (0, 2), (0, 1), (2, 1), (2, 0), (1, 0))


def _atom_permutation(
    structure: CrystalStructure,
    rotation: np.ndarray,
    translation: np.ndarray,
    tol: float
) -> np.ndarray:
    """Index of the atom each atom is sent to, or -1 where no image matches."""
    positions = structure.positions
    images = positions @ rotation.T + translation
    matches = is_lattice_vector(images[:, None, :] - positions[None, :, :], tol)

    symbols = np.array(structure.symbols)
    matches &= symbols[:, None] == symbols[None, :]

    return np.where(matches.any(axis=1), matches.argmax(axis=1), -1)


def magnetic_symmetry(
    structure: CrystalStructure,
    spins,
    tol: float = DEFAULT_TOLERANCE
) -> Tuple[List[np.ndarray], List[bool]]:
    """
    Magnetic point-group operations of a collinear configuration.

    Args:
        structure: Structure with symmetry operations
        spins: Spin of every atom (+1/-1/0)
        tol: Position tolerance

    Returns:
        Tuple of (Cartesian rotations, time-reversal flags)
    """
    spins = np.asarray([int(s) for s in spins], dtype=int)
    if spins.shape[0] != structure.n_atoms:
        raise ValueError(f"Expected {structure.n_atoms} spins, got {spins.shape[0]}")

    lattice = structure.cell.T
    to_fractional = np.linalg.inv(lattice)

    rotations = []
    time_reversals = []
    seen = set()

    for op in structure.symmetry_operations:
        image = _atom_permutation(structure, op.rotation, op.translation, tol)
        if np.any(image < 0):
            continue

        moved = spins[image]
        if np.array_equal(moved, spins):
            flipped = False
        elif np.array_equal(moved, -spins):
            flipped = True
        else:
            continue

        # Point-group part only: drop duplicates from centring translations
        key = (tuple(np.rint(op.rotation).astype(int).ravel()), flipped)
        if key in seen:
            continue
        seen.add(key)

        rotations.append(lattice @ op.rotation @ to_fractional)
        time_reversals.append(flipped)

    return rotations, time_reversals


def symmetrized_conductivity_tensor(
    rotations: Sequence[np.ndarray],
    time_reversals: Sequence[bool]
) -> np.ndarray:
    """
    Sum of R^-1 S R over the group, with S transposed under time reversal.

    Args:
        rotations: Cartesian rotation matrices
        time_reversals: Whether each operation carries time reversal

    Returns:
        3x3 symmetrised tensor
    """
    if len(rotations) != len(time_reversals):
        raise ValueError("rotations and time_reversals must have the same length")

    seed = np.array(CONDUCTIVITY_SEED)
    tensor = np.zeros((3, 3))

    for R, T in zip(rotations, time_reversals):
        R = np.asarray(R, dtype=float)
        tensor += np.linalg.inv(R) @ (seed.T if T else seed) @ R

    return tensor


def antisymmetric_part(tensor: np.ndarray) -> np.ndarray:
    return 0.5 * (tensor - tensor.T)


def anomalous_hall_vector(tensor: np.ndarray) -> np.ndarray:
    """Hall vector [zy, xz, yx] of the antisymmetric part of ``tensor``."""
    Sa = antisymmetric_part(np.asarray(tensor, dtype=float))
    return np.array([Sa[2, 1], Sa[0, 2], Sa[1, 0]])


def label_tensor(tensor: np.ndarray, tol: float = DEFAULT_TOLERANCE) -> List[List[str]]:
    """
    Symbolic form of a tensor.

    Components below ``tol`` become "0"; a component equal to an earlier one
    reuses its label, one equal in magnitude reuses it negated.

    Args:
        tensor: 3x3 tensor
        tol: Equality tolerance

    Returns:
        3x3 nested list of labels
    """
    m = np.asarray(tensor, dtype=float)
    labels = [["0"] * 3 for _ in range(3)]

    for i, (row, col) in enumerate(TENSOR_INDICES):
        value = m[row, col]
        if abs(value) <= tol:
            continue

        labels[row][col] = TENSOR_LABELS[i]
        for prev_row, prev_col in TENSOR_INDICES[:i]:
            previous = m[prev_row, prev_col]
            if abs(value - previous) < tol:
                labels[row][col] = labels[prev_row][prev_col]
                break
            if abs(abs(value) - abs(previous)) < tol:
                name = labels[prev_row][prev_col]
                labels[row][col] = name[1:] if name.startswith('-') else '-' + name
                break

    return labels


def analyze_anomalous_hall(
    structure: CrystalStructure,
    spins,
    tol: float = DEFAULT_TOLERANCE,
    verbose: bool = False
) -> Dict[str, Any]:
    """
    Full anomalous Hall analysis of a spin configuration.

    Returns:
        Dictionary with the magnetic operations, conductivity tensor, its
        antisymmetric part, the Hall vector and symbolic labels
    """
    rotations, time_reversals = magnetic_symmetry(structure, spins, tol)
    tensor = symmetrized_conductivity_tensor(rotations, time_reversals)
    antisymmetric = antisymmetric_part(tensor)
    hall = anomalous_hall_vector(tensor)

    results = {
        'rotations': np.array(rotations),
        'time_reversals': np.array(time_reversals, dtype=bool),
        'conductivity_tensor': tensor,
        'antisymmetric_tensor': antisymmetric,
        'hall_vector': hall,
        'tensor_labels': label_tensor(tensor, tol),
        'antisymmetric_labels': label_tensor(antisymmetric, tol),
        'has_anomalous_hall': bool(np.linalg.norm(hall) > tol),
    }

    if verbose:
        print(f"🧲 Magnetic point group: {len(rotations)} operations "
              f"({sum(time_reversals)} with time reversal)")
        for i, (R, T) in enumerate(zip(rotations, time_reversals)):
            print(f"   {i + 1}: Time reversal: {'Yes' if T else 'No'}")
            print(_format_matrix(R, 3, indent="      "))
        print("\nConductivity Tensor:")
        print(_format_matrix(tensor, 7))
        print(_format_labels(results['tensor_labels']))
        print("\nAntisymmetric Part (Anomalous Hall Effect):")
        print(_format_matrix(antisymmetric, 7))
        print(_format_labels(results['antisymmetric_labels']))
        print(f"\nHall Vector: [{hall[0]:.7f}, {hall[1]:.7f}, {hall[2]:.7f}]")

    return results


def _format_matrix(matrix: np.ndarray, precision: int, indent: str = "   ") -> str:
    width = precision + 5
    return '\n'.join(
        indent + "[" + " ".join(f"{value:{width}.{precision}f}" for value in row) + "   ]"
        for row in np.asarray(matrix)
    )


def _format_labels(labels: List[List[str]]) -> str:
    return '\n'.join("   [" + ", ".join(f"{label:>4}" for label in row) + "]" for row in labels)
