"""
Crystal structure container with symmetry data for altermagnet analysis.
"""

import warnings
from enum import IntEnum
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence

import numpy as np
import spglib
from ase import Atoms
from ase.io import read

from .geometry import canonicalize_positions
from ..utils.constants import DEFAULT_TOLERANCE
from ..utils.elements import get_atomic_number, is_magnetic_element, magnetic_indices


class SpinState(IntEnum):
    """Collinear spin label of a single atom."""

    DOWN = -1
    NONE = 0
    UP = 1

    @property
    def letter(self) -> str:
        return {SpinState.UP: 'u', SpinState.DOWN: 'd', SpinState.NONE: 'n'}[self]

    def flipped(self) -> 'SpinState':
        return SpinState(-int(self))


class SymmetryOperation(NamedTuple):
    """Space-group operation ``x -> R x + t`` in fractional coordinates."""

    rotation: np.ndarray
    translation: np.ndarray

    @classmethod
    def from_arrays(cls, rotation, translation) -> 'SymmetryOperation':
        rotation = np.array(rotation, dtype=float).reshape(3, 3)
        translation = np.array(translation, dtype=float).reshape(3)
        rotation.flags.writeable = False
        translation.flags.writeable = False
        return cls(rotation, translation)

    def apply(self, positions: np.ndarray) -> np.ndarray:
        """Apply the operation to one position or an (n, 3) stack."""
        return np.asarray(positions) @ self.rotation.T + self.translation


IDENTITY = SymmetryOperation.from_arrays(np.eye(3), np.zeros(3))


class CrystalStructure:
    """
    Read-only input to the altermagnet classifier and configuration search.

    Holds the cell, the atoms (element label and fractional position), the
    orbit id of every atom and the space-group operations. Symmetry data is
    supplied by the caller or detected with spglib through ``from_atoms``.
    """

    def __init__(
        self,
        cell,
        symbols: Sequence[str],
        positions,
        orbit_ids: Sequence[int],
        symmetry_operations: Sequence[SymmetryOperation],
        spacegroup: Optional[str] = None
    ):
        """
        Initialize a crystal structure.

        Args:
            cell: 3x3 lattice matrix, one lattice vector per row
            symbols: Chemical symbol of every atom
            positions: (n_atoms, 3) fractional coordinates
            orbit_ids: Symmetry-equivalence class of every atom
            symmetry_operations: Space-group operations in fractional coordinates
            spacegroup: Optional space-group label for reporting
        """
        self.cell = np.array(cell, dtype=float).reshape(3, 3)
        self.symbols = [str(s) for s in symbols]
        self.positions = canonicalize_positions(np.array(positions, dtype=float).reshape(-1, 3))
        self.orbit_ids = np.array(orbit_ids, dtype=int)
        self.symmetry_operations = [
            op if isinstance(op, SymmetryOperation) else SymmetryOperation.from_arrays(*op)
            for op in symmetry_operations
        ]
        self.spacegroup = spacegroup

        self.n_atoms = len(self.symbols)

        if self.positions.shape[0] != self.n_atoms:
            raise ValueError(f"Got {self.positions.shape[0]} positions for {self.n_atoms} atoms")
        if self.orbit_ids.shape[0] != self.n_atoms:
            raise ValueError(f"Got {self.orbit_ids.shape[0]} orbit ids for {self.n_atoms} atoms")
        if len(self.symmetry_operations) == 0:
            raise ValueError("At least one symmetry operation (the identity) is required")

        self.cell.flags.writeable = False
        self.positions.flags.writeable = False
        self.orbit_ids.flags.writeable = False

    @classmethod
    def from_atoms(
        cls,
        atoms: Atoms,
        symprec: float = DEFAULT_TOLERANCE
    ) -> 'CrystalStructure':
        """
        Build a structure from an ASE Atoms object, detecting symmetry with spglib.

        Args:
            atoms: ASE Atoms object (periodic)
            symprec: spglib symmetry precision

        Returns:
            CrystalStructure with orbits and symmetry operations populated
        """
        cell = atoms.get_cell().array
        positions = canonicalize_positions(atoms.get_scaled_positions(wrap=True))
        symbols = atoms.get_chemical_symbols()
        numbers = [get_atomic_number(s) for s in symbols]

        try:
            dataset = spglib.get_symmetry_dataset((cell, positions, numbers), symprec=symprec)
        except spglib.SpglibError:
            dataset = None

        if dataset is None:
            warnings.warn("spglib could not determine the space group; "
                          "using the identity and grouping orbits by element")
            return cls(cell, symbols, positions, _orbits_by_element(symbols), [IDENTITY])

        operations = [
            SymmetryOperation.from_arrays(R, t)
            for R, t in zip(dataset.rotations, dataset.translations)
        ]
        spacegroup = f"{dataset.international} ({dataset.number})"

        return cls(cell, symbols, positions, dataset.equivalent_atoms, operations, spacegroup)

    @classmethod
    def from_file(
        cls,
        filename: str,
        symprec: float = DEFAULT_TOLERANCE
    ) -> 'CrystalStructure':
        """Read a structure file (POSCAR, CIF, ...) with ASE and detect symmetry."""
        return cls.from_atoms(read(filename), symprec=symprec)

    @property
    def rotations(self) -> np.ndarray:
        """(n_ops, 3, 3) stack of rotation matrices."""
        return np.array([op.rotation for op in self.symmetry_operations])

    @property
    def translations(self) -> np.ndarray:
        """(n_ops, 3) stack of translation vectors."""
        return np.array([op.translation for op in self.symmetry_operations])

    def orbits(self) -> Dict[int, List[int]]:
        """Atom indices of every orbit, keyed by orbit id in ascending order."""
        orbits: Dict[int, List[int]] = {}
        for orbit_id in np.unique(self.orbit_ids):
            orbits[int(orbit_id)] = [int(i) for i in np.flatnonzero(self.orbit_ids == orbit_id)]
        return orbits

    def magnetic_indices(
        self,
        predicate: Callable[[str], bool] = is_magnetic_element
    ) -> List[int]:
        """Indices of atoms that may carry a spin according to ``predicate``."""
        return magnetic_indices(self.symbols, predicate)

    def to_atoms(self, spins: Optional[Sequence[int]] = None) -> Atoms:
        """
        Export to an ASE Atoms object.

        Spins, when given, are stored as collinear initial magnetic moments.
        """
        atoms = Atoms(
            symbols=self.symbols,
            scaled_positions=self.positions,
            cell=self.cell,
            pbc=True
        )
        if spins is not None:
            atoms.set_initial_magnetic_moments([float(int(s)) for s in spins])
        return atoms

    def __len__(self) -> int:
        return self.n_atoms

    def __repr__(self) -> str:
        return (f"CrystalStructure(n_atoms={self.n_atoms}, "
                f"n_orbits={len(np.unique(self.orbit_ids))}, "
                f"n_symops={len(self.symmetry_operations)}, "
                f"spacegroup={self.spacegroup!r})")


def _orbits_by_element(symbols: Sequence[str]) -> List[int]:
    orbit_of_element: Dict[str, int] = {}
    return [orbit_of_element.setdefault(s, len(orbit_of_element)) for s in symbols]
