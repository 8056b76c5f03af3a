#!/usr/bin/env python3
"""
Test structure construction, spglib symmetry detection and element data.
"""

import numpy as np
import pytest
import spglib
from ase import Atoms
from ase.io import write

from amcheck import ConfigurationSearch, CrystalStructure, SpinState, UnbalancedSpinError, is_altermagnet
from amcheck.core.structure import IDENTITY, SymmetryOperation
from amcheck.utils.elements import get_atomic_number, is_magnetic_element, normalize_symbol

UP, DOWN, NONE = SpinState.UP, SpinState.DOWN, SpinState.NONE


def bcc_iron():
    return Atoms('Fe2', scaled_positions=[[0, 0, 0], [0.5, 0.5, 0.5]],
                 cell=np.eye(3) * 2.87, pbc=True)


def rutile_mnf2(x=0.305):
    return Atoms(
        symbols=['Mn', 'Mn', 'F', 'F', 'F', 'F'],
        scaled_positions=[
            [0.0, 0.0, 0.0],
            [0.5, 0.5, 0.5],
            [x, x, 0.0],
            [-x, -x, 0.0],
            [0.5 + x, 0.5 - x, 0.5],
            [0.5 - x, 0.5 + x, 0.5],
        ],
        cell=np.diag([4.87, 4.87, 3.31]),
        pbc=True
    )


def test_bcc_iron_symmetry():
    structure = CrystalStructure.from_atoms(bcc_iron())
    assert "Im-3m" in structure.spacegroup
    assert len(structure.symmetry_operations) == 96
    assert structure.orbit_ids[0] == structure.orbit_ids[1]


def test_bcc_antiferromagnet_is_not_altermagnetic():
    """The two sublattices are related by the body-centring translation."""
    structure = CrystalStructure.from_atoms(bcc_iron())
    assert not is_altermagnet(structure, [UP, DOWN])


def test_rutile_mnf2_is_altermagnetic():
    structure = CrystalStructure.from_atoms(rutile_mnf2())
    assert "P4_2/mnm" in structure.spacegroup
    assert len(structure.symmetry_operations) == 16
    assert structure.orbits()[0] == [0, 1]

    spins = [UP, DOWN, NONE, NONE, NONE, NONE]
    assert is_altermagnet(structure, spins)

    with pytest.raises(UnbalancedSpinError):
        is_altermagnet(structure, [UP, UP, NONE, NONE, NONE, NONE])


def test_rutile_search_finds_both_neel_states():
    structure = CrystalStructure.from_atoms(rutile_mnf2())
    summary = ConfigurationSearch(structure, verbose=False).search_all(write_report=False)
    assert summary['n_magnetic'] == 2
    assert summary['accepted'] == [1, 2]


def test_from_file(tmp_path):
    path = tmp_path / "POSCAR"
    write(str(path), rutile_mnf2(), format="vasp")
    structure = CrystalStructure.from_file(str(path))
    assert structure.n_atoms == 6
    assert structure.symbols[:2] == ['Mn', 'Mn']


def test_spglib_error_falls_back_to_identity(monkeypatch):
    def failing_dataset(*args, **kwargs):
        raise spglib.SpglibError("spglib failed")

    monkeypatch.setattr(spglib, "get_symmetry_dataset", failing_dataset)

    with pytest.warns(UserWarning, match="could not determine the space group"):
        structure = CrystalStructure.from_atoms(rutile_mnf2())

    assert len(structure.symmetry_operations) == 1
    assert structure.spacegroup is None
    assert structure.orbits() == {0: [0, 1], 1: [2, 3, 4, 5]}


def test_positions_are_canonical():
    structure = CrystalStructure.from_atoms(rutile_mnf2())
    assert np.all(structure.positions >= 0.0)
    assert np.all(structure.positions < 1.0)


def test_structure_validation():
    with pytest.raises(ValueError):
        CrystalStructure(np.eye(3), ['Fe', 'Fe'], [[0, 0, 0]], [0, 0], [IDENTITY])
    with pytest.raises(ValueError):
        CrystalStructure(np.eye(3), ['Fe'], [[0, 0, 0]], [0, 1], [IDENTITY])
    with pytest.raises(ValueError):
        CrystalStructure(np.eye(3), ['Fe'], [[0, 0, 0]], [0], [])


def test_structure_is_read_only(rotation_pair):
    with pytest.raises(ValueError):
        rotation_pair.positions[0, 0] = 0.5
    with pytest.raises(ValueError):
        rotation_pair.symmetry_operations[0].rotation[0, 0] = 2.0


def test_symmetry_operation_apply():
    inversion = SymmetryOperation.from_arrays(-np.eye(3), np.zeros(3))
    centring = SymmetryOperation.from_arrays(np.eye(3), [0.5, 0.5, 0.5])
    assert np.allclose(centring.apply([[0.0, 0.0, 0.0], [0.25, 0.5, 0.0]]),
                       [[0.5, 0.5, 0.5], [0.75, 1.0, 0.5]])
    assert np.allclose(inversion.apply([0.1, 0.2, 0.3]), [-0.1, -0.2, -0.3])


def test_to_atoms_carries_spins(rotation_pair):
    atoms = rotation_pair.to_atoms([UP, DOWN])
    assert list(atoms.get_initial_magnetic_moments()) == [1.0, -1.0]
    assert atoms.get_chemical_symbols() == ['Fe', 'Fe']


def test_orbits_and_magnetic_indices(translation_fe2f4):
    assert translation_fe2f4.orbits() == {0: [0, 1], 1: [2, 3], 2: [4, 5]}
    assert translation_fe2f4.magnetic_indices() == [0, 1]


@pytest.mark.parametrize("symbol, magnetic", [
    ("Fe", True), ("Mn", True), ("fe", True), ("Fe3+", True), ("Gd", True),
    ("F", False), ("O", False), ("Te", False), ("Xx", False),
])
def test_magnetic_elements(symbol, magnetic):
    assert is_magnetic_element(symbol) == magnetic


def test_symbol_normalisation():
    assert normalize_symbol("mn2+") == "Mn"
    assert normalize_symbol("Fe_pv") == "Fe"
    assert get_atomic_number("Fe") == 26
    with pytest.raises(ValueError):
        normalize_symbol("Xx")
