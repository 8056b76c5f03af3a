"""Shared structures for the AMCheck test modules."""

import numpy as np
import pytest

from amcheck.core.structure import CrystalStructure, SymmetryOperation, IDENTITY


CELL = np.eye(3) * 4.0

INVERSION = SymmetryOperation.from_arrays(-np.eye(3), np.zeros(3))
C2Z = SymmetryOperation.from_arrays(np.diag([-1.0, -1.0, 1.0]), np.zeros(3))
C4Z = SymmetryOperation.from_arrays([[0, -1, 0], [1, 0, 0], [0, 0, 1]], np.zeros(3))
C4Z3 = SymmetryOperation.from_arrays([[0, 1, 0], [-1, 0, 0], [0, 0, 1]], np.zeros(3))
BODY_CENTRING = SymmetryOperation.from_arrays(np.eye(3), [0.5, 0.5, 0.5])


def make_structure(symbols, positions, orbit_ids, operations):
    return CrystalStructure(CELL, symbols, positions, orbit_ids, operations)


@pytest.fixture
def rotation_pair():
    """Two Fe sites related only by a two-fold rotation."""
    return make_structure(
        ['Fe', 'Fe'],
        [[0.25, 0.0, 0.0], [0.75, 0.0, 0.0]],
        [0, 0],
        [IDENTITY, C2Z]
    )


@pytest.fixture
def translation_fe2f4():
    """Fe2F4 whose two Fe sites are related only by a body-centring translation."""
    return make_structure(
        ['Fe', 'Fe', 'F', 'F', 'F', 'F'],
        [
            [0.0, 0.0, 0.0],
            [0.5, 0.5, 0.5],
            [0.25, 0.0, 0.0],
            [0.75, 0.5, 0.5],
            [0.75, 0.0, 0.0],
            [0.25, 0.5, 0.5],
        ],
        [0, 0, 1, 1, 2, 2],
        [IDENTITY, BODY_CENTRING]
    )


@pytest.fixture
def centrosymmetric_pairs():
    """Four Fe atoms in two inversion-related pairs (identity + inversion only)."""
    return make_structure(
        ['Fe', 'Fe', 'Fe', 'Fe'],
        [
            [0.1, 0.2, 0.3],
            [-0.1, -0.2, -0.3],
            [0.3, 0.1, 0.4],
            [-0.3, -0.1, -0.4],
        ],
        [0, 0, 1, 1],
        [IDENTITY, INVERSION]
    )


@pytest.fixture
def square_ring():
    """Four Fe atoms on a ring permuted cyclically by a four-fold axis."""
    return make_structure(
        ['Fe', 'Fe', 'Fe', 'Fe'],
        [
            [0.25, 0.0, 0.0],
            [0.0, 0.25, 0.0],
            [0.75, 0.0, 0.0],
            [0.0, 0.75, 0.0],
        ],
        [0, 0, 0, 0],
        [IDENTITY, C4Z, C2Z, C4Z3]
    )

