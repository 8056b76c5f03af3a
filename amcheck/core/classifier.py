"""
Altermagnetism classification of collinear spin assignments.

An orbit of symmetry-equivalent magnetic atoms is altermagnetic when its up
and down sublattices are mapped onto each other by crystal symmetry, but not
exclusively through inversion or pure lattice translation. If the sublattices
are not related at all the orbit is a Luttinger ferrimagnet; if they are
related only through inversion/translation it is a conventional
antiferromagnet.
"""

from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from .geometry import periodic_norm
from .structure import CrystalStructure, SpinState, SymmetryOperation
from ..utils.constants import DEFAULT_TOLERANCE


class UnbalancedSpinError(ValueError):
    """An evaluated orbit has different numbers of up and down spins."""


class IllPosedStructureError(RuntimeError):
    """No orbit could be evaluated although some orbit has multiplicity > 1."""


class Verdict(NamedTuple):
    """Outcome of classifying one spin assignment."""

    is_altermagnetic: bool
    invalid_reason: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.invalid_reason is None


class OrbitRelations(NamedTuple):
    """
    Spin-independent symmetry relations between the atoms of one orbit.

    Every array has shape (n_ops, n_atoms, n_atoms); entry [s, i, j] tells
    whether operation s relates atom i to atom j in the given way.
    """

    maps_onto: np.ndarray
    inversion_pair: np.ndarray
    translation_pair: np.ndarray

    @property
    def it_pair(self) -> np.ndarray:
        return self.inversion_pair | self.translation_pair


def symmetry_relations(
    rotations: np.ndarray,
    translations: np.ndarray,
    positions: np.ndarray,
    tol: float = DEFAULT_TOLERANCE
) -> OrbitRelations:
    """
    Evaluate which operations relate which pairs of positions.

    Args:
        rotations: (n_ops, 3, 3) rotation matrices
        translations: (n_ops, 3) translation vectors
        positions: (n, 3) fractional positions
        tol: Distance tolerance

    Returns:
        OrbitRelations with the boolean relation tensors
    """
    rotations = np.asarray(rotations, dtype=float).reshape(-1, 3, 3)
    translations = np.asarray(translations, dtype=float).reshape(-1, 3)
    positions = np.asarray(positions, dtype=float).reshape(-1, 3)

    # R x_i + t - x_j
    images = np.einsum('sab,ib->sia', rotations, positions) + translations[:, None, :]
    maps_onto = periodic_norm(images[:, :, None, :] - positions[None, None, :, :], tol) < tol

    traces = np.trace(rotations, axis1=1, axis2=2)
    is_inversion = np.abs(traces + 3.0) < tol
    is_translation = (np.abs(traces - 3.0) < tol) & (np.linalg.norm(translations, axis=1) > tol)

    # Inversion: the pair midpoint is a fixed point of the operation
    midpoints = 0.5 * (positions[:, None, :] + positions[None, :, :])
    moved = (np.einsum('sab,ijb->sija', rotations, midpoints)
             + translations[:, None, None, :] - midpoints[None])
    midpoint_fixed = periodic_norm(moved, tol) < tol

    # Pure translation: x_i + t lands on x_j
    shifted = (positions[None, :, None, :] + translations[:, None, None, :]
               - positions[None, None, :, :])
    translated = periodic_norm(shifted, tol) < tol

    inversion_pair = is_inversion[:, None, None] & midpoint_fixed
    translation_pair = is_translation[:, None, None] & translated

    return OrbitRelations(maps_onto, inversion_pair, translation_pair)


def classify_orbit(
    relations: OrbitRelations,
    spins,
    tol: float = DEFAULT_TOLERANCE
) -> Dict[str, Any]:
    """
    Classify one orbit from precomputed relations.

    Args:
        relations: Output of ``symmetry_relations`` for the orbit positions
        spins: Spin of every orbit atom (+1 up, -1 down, 0 none)
        tol: Tolerance of the count comparisons

    Returns:
        Dictionary with the verdict and per-atom diagnostics
    """
    spins = np.asarray(spins, dtype=np.int8)
    n_atoms = spins.shape[0]
    magnetic = spins != 0
    opposite = (spins[:, None].astype(int) * spins[None, :]) == -1

    # Operations that send every magnetic atom onto an opposite-spin atom
    covered = (relations.maps_onto & opposite[None]).any(axis=2)
    retained = np.all(covered | ~magnetic[None, :], axis=1)

    n_magnetic = 2 * int(np.count_nonzero(spins == SpinState.UP))

    analysis = {
        'n_magnetic': n_magnetic,
        'retained_operations': np.flatnonzero(retained),
        'symmetry_related': np.zeros(n_atoms, dtype=bool),
        'inversion_related': np.zeros(n_atoms, dtype=bool),
        'translation_related': np.zeros(n_atoms, dtype=bool),
        'it_related': np.zeros(n_atoms, dtype=bool),
        'luttinger_ferrimagnet': True,
        'altermagnetic': False
    }

    if not retained.any():
        return analysis

    pairs = np.triu(opposite, k=1)

    def related_atoms(tensor: np.ndarray) -> np.ndarray:
        hits = (tensor[retained] & pairs[None]).any(axis=0)
        return hits.any(axis=1) | hits.any(axis=0)

    symmetry_related = related_atoms(relations.maps_onto)
    inversion_related = related_atoms(relations.inversion_pair)
    translation_related = related_atoms(relations.translation_pair)
    it_related = inversion_related | translation_related

    sum_sym = int(np.count_nonzero(symmetry_related))
    sum_it = int(np.count_nonzero(it_related))

    luttinger = abs(sum_sym - n_magnetic) > tol

    analysis.update({
        'symmetry_related': symmetry_related,
        'inversion_related': inversion_related,
        'translation_related': translation_related,
        'it_related': it_related,
        'luttinger_ferrimagnet': luttinger,
        'altermagnetic': (abs(sum_it - n_magnetic) > tol) and not luttinger
    })

    return analysis


def analyze_orbit(
    symops: Sequence[SymmetryOperation],
    positions,
    spins,
    tol: float = DEFAULT_TOLERANCE
) -> Dict[str, Any]:
    """
    Full altermagnetism analysis of a single orbit.

    Args:
        symops: Space-group operations
        positions: (n, 3) fractional positions of the orbit atoms
        spins: Spin of every orbit atom
        tol: Distance tolerance

    Returns:
        Dictionary as returned by ``classify_orbit``
    """
    positions = np.asarray(positions, dtype=float).reshape(-1, 3)
    spins = np.asarray([int(s) for s in spins], dtype=np.int8)

    if positions.shape[0] != spins.shape[0]:
        raise ValueError(f"Number of positions ({positions.shape[0]}) must equal "
                         f"number of spins ({spins.shape[0]})")

    if positions.shape[0] == 1:
        return {
            'n_magnetic': 2 * int(spins[0] == SpinState.UP),
            'retained_operations': np.zeros(0, dtype=int),
            'symmetry_related': np.zeros(1, dtype=bool),
            'inversion_related': np.zeros(1, dtype=bool),
            'translation_related': np.zeros(1, dtype=bool),
            'it_related': np.zeros(1, dtype=bool),
            'luttinger_ferrimagnet': False,
            'altermagnetic': False
        }

    rotations = np.array([op.rotation for op in symops])
    translations = np.array([op.translation for op in symops])
    relations = symmetry_relations(rotations, translations, positions, tol)

    return classify_orbit(relations, spins, tol)


def is_orbit_altermagnetic(
    symops: Sequence[SymmetryOperation],
    positions,
    spins,
    tol: float = DEFAULT_TOLERANCE
) -> bool:
    """
    Decide whether a single orbit is altermagnetic.

    A singleton orbit is never altermagnetic.
    """
    return analyze_orbit(symops, positions, spins, tol)['altermagnetic']


class AltermagnetClassifier:
    """
    Structure-level altermagnetism classifier.

    Symmetry relations of every orbit are computed once at construction,
    after which ``classify`` only does boolean array work per spin
    assignment. Instances are read-only and safe to share between threads.
    """

    def __init__(
        self,
        structure: CrystalStructure,
        tolerance: float = DEFAULT_TOLERANCE
    ):
        """
        Initialize the classifier.

        Args:
            structure: Structure with orbits and symmetry operations
            tolerance: Distance tolerance in fractional coordinates
        """
        self.structure = structure
        self.tolerance = tolerance

        orbits = structure.orbits()
        self.orbits: List[Tuple[int, np.ndarray]] = [
            (orbit_id, np.array(atom_ids, dtype=int)) for orbit_id, atom_ids in orbits.items()
        ]
        self.all_multiplicity_one = all(len(ids) == 1 for _, ids in self.orbits)

        rotations = structure.rotations
        translations = structure.translations
        self.relations: Dict[int, OrbitRelations] = {}
        for orbit_id, atom_ids in self.orbits:
            if len(atom_ids) > 1:
                self.relations[orbit_id] = symmetry_relations(
                    rotations, translations, structure.positions[atom_ids], tolerance
                )

    def _spin_array(self, spins) -> np.ndarray:
        spins = np.asarray([int(s) for s in spins], dtype=np.int8)
        if spins.shape[0] != self.structure.n_atoms:
            raise ValueError(f"Expected {self.structure.n_atoms} spins, got {spins.shape[0]}")
        return spins

    def classify(self, spins) -> Verdict:
        """
        Classify a full spin assignment without raising on unbalanced orbits.

        Args:
            spins: Spin of every atom

        Returns:
            Verdict; ``invalid_reason`` is set for unbalanced orbits

        Raises:
            IllPosedStructureError: If no orbit qualifies for evaluation
        """
        spins = self._spin_array(spins)
        altermagnet = False
        check_was_performed = False

        for orbit_id, atom_ids in self.orbits:
            if len(atom_ids) == 1:
                continue

            orbit_spins = spins[atom_ids]
            if not orbit_spins.any():
                continue

            n_up = int(np.count_nonzero(orbit_spins == SpinState.UP))
            n_down = int(np.count_nonzero(orbit_spins == SpinState.DOWN))
            if n_up != n_down:
                return Verdict(False, f"orbit {orbit_id} has {n_up} up and {n_down} down spins")

            check_was_performed = True
            if not altermagnet:
                analysis = classify_orbit(self.relations[orbit_id], orbit_spins, self.tolerance)
                altermagnet = analysis['altermagnetic']

        if not check_was_performed:
            self.ensure_well_posed()

        return Verdict(altermagnet)

    def ensure_well_posed(self):
        if not self.all_multiplicity_one:
            raise IllPosedStructureError(
                "Something is wrong with the description of magnetic atoms: no orbit with "
                "multiplicity > 1 carries spins. Have you provided a non-magnetic or "
                "ferromagnetic material?"
            )

    def is_altermagnet(self, spins, verbose: bool = False) -> bool:
        """
        Decide whether a spin assignment makes the structure altermagnetic.

        Args:
            spins: Spin of every atom
            verbose: Print per-orbit diagnostics

        Returns:
            True if any evaluated orbit is altermagnetic

        Raises:
            UnbalancedSpinError: If an evaluated orbit is not spin-balanced
            IllPosedStructureError: If no orbit qualifies for evaluation
        """
        if not verbose:
            verdict = self.classify(spins)
            if not verdict.is_valid:
                raise UnbalancedSpinError(
                    f"Number of up spins should equal number of down spins: {verdict.invalid_reason}"
                )
            return verdict.is_altermagnetic

        return self._is_altermagnet_verbose(self._spin_array(spins))

    def _is_altermagnet_verbose(self, spins: np.ndarray) -> bool:
        symbols = self.structure.symbols
        altermagnet = False
        check_was_performed = False

        for orbit_id, atom_ids in self.orbits:
            element = symbols[atom_ids[0]]
            print(f"\nOrbit of {element} atoms: {', '.join(str(i + 1) for i in atom_ids)}")

            if len(atom_ids) == 1:
                print("   Only one atom in the orbit: skipping.")
                continue

            orbit_spins = spins[atom_ids]
            if not orbit_spins.any():
                print(f"   Group of non-magnetic atoms ({element}): skipping.")
                continue

            n_up = int(np.count_nonzero(orbit_spins == SpinState.UP))
            n_down = int(np.count_nonzero(orbit_spins == SpinState.DOWN))
            if n_up != n_down:
                raise UnbalancedSpinError(
                    f"Number of up spins should equal number of down spins: "
                    f"got {n_up} up and {n_down} down spins!"
                )

            check_was_performed = True
            analysis = classify_orbit(self.relations[orbit_id], orbit_spins, self.tolerance)
            _print_orbit_analysis(analysis, atom_ids)
            altermagnet = altermagnet or analysis['altermagnetic']
            print(f"   Altermagnetic orbit ({element})? {analysis['altermagnetic']}")

        if not check_was_performed:
            self.ensure_well_posed()
            print("Note: in this structure, all orbits have multiplicity one.\n"
                  "This material can only be a Luttinger ferrimagnet.")

        return altermagnet


def _print_orbit_analysis(analysis: Dict[str, Any], atom_ids: np.ndarray):
    if len(analysis['retained_operations']) == 0:
        print("   Up and down sublattices are not symmetry-related: "
              "the material is Luttinger ferrimagnet!")
        return

    for label, key in (('inversion', 'inversion_related'), ('translation', 'translation_related')):
        related = [str(atom_ids[i] + 1) for i in np.flatnonzero(analysis[key])]
        if related:
            print(f"   Atoms related by {label}: {' '.join(related)}")

    print("   Atoms related by inversion/translation (1-yes, 0-no): "
          + ' '.join(str(int(v)) for v in analysis['it_related']))
    print("   Atoms related by some symmetry (1-yes, 0-no): "
          + ' '.join(str(int(v)) for v in analysis['symmetry_related']))

    if analysis['luttinger_ferrimagnet']:
        print("   Up and down sublattices are not related by symmetry: "
              "the material is Luttinger ferrimagnet!")


def is_altermagnet(
    structure: CrystalStructure,
    spins,
    tol: float = DEFAULT_TOLERANCE,
    verbose: bool = False
) -> bool:
    """
    Decide whether a spin assignment makes a structure altermagnetic.

    Args:
        structure: Structure with orbits and symmetry operations
        spins: Spin of every atom (SpinState or +1/-1/0)
        tol: Distance tolerance
        verbose: Print per-orbit diagnostics

    Returns:
        True if at least one evaluated orbit is altermagnetic
    """
    return AltermagnetClassifier(structure, tol).is_altermagnet(spins, verbose=verbose)
