#!/usr/bin/env python3
"""
Test periodic wrapping of fractional coordinates.
"""

import numpy as np
import pytest

from amcheck.core.geometry import wrap_to_cell, periodic_norm, is_lattice_vector, canonicalize_positions


def test_wrap_reduces_into_home_cell():
    """Coordinates outside [0, 1) are reduced modulo 1."""
    wrapped = wrap_to_cell([0.25, 1.5, -0.25], 1e-3)
    assert np.allclose(wrapped, [0.25, 0.5, 0.75])


def test_wrap_with_zero_tolerance_is_plain_modulo():
    """tol=0 performs no boundary folding."""
    wrapped = wrap_to_cell([0.9999, -0.5, 2.0], 0.0)
    assert np.allclose(wrapped, [0.9999, 0.5, 0.0])


def test_wrap_folds_near_one_to_near_zero():
    """A coordinate within tol below 1 becomes the small offset 1 - x."""
    wrapped = wrap_to_cell([0.9999, 0.0, 0.5], 1e-3)
    assert wrapped[0] == pytest.approx(1e-4)
    assert wrapped[2] == pytest.approx(0.5)


def test_wrap_tiny_negative_stays_below_one():
    """-1e-17 + 1 rounds to 1.0, which must come back as 0."""
    wrapped = wrap_to_cell([-1e-17, 0.0, 0.0], 0.0)
    assert np.all(wrapped < 1.0)
    assert wrapped[0] == 0.0


@pytest.mark.parametrize("v", [
    [0.3, -0.7, 12.25],
    [0.9999, -0.0002, 1.0],
    [-3.5, 0.0005, 0.9995],
    [1e-12, -1e-12, 0.5],
])
def test_wrap_is_idempotent(v):
    """Wrapping twice equals wrapping once, within the tolerance."""
    tol = 1e-3
    once = wrap_to_cell(v, tol)
    twice = wrap_to_cell(once, tol)
    assert np.allclose(once, twice, atol=tol)


def test_wrap_works_on_stacks():
    """Wrapping is element-wise over arbitrary leading dimensions."""
    v = np.full((2, 4, 3), 1.25)
    assert wrap_to_cell(v).shape == (2, 4, 3)
    assert np.allclose(wrap_to_cell(v), 0.25)


def test_lattice_vector_detection():
    """Integer displacements are lattice vectors, others are not."""
    assert is_lattice_vector([1.0, -2.0, 3.0])
    assert is_lattice_vector([0.9999, 0.0, 0.0])
    assert not is_lattice_vector([0.5, 0.0, 0.0])
    assert periodic_norm([2.0, 0.0, 0.0]) == pytest.approx(0.0)


def test_canonicalize_positions():
    """Positions end up in [0, 1)."""
    positions = canonicalize_positions([[-0.1, 1.0, 0.5], [2.25, -3.0, 0.0]])
    assert np.all(positions >= 0.0) and np.all(positions < 1.0)
    assert np.allclose(positions, [[0.9, 0.0, 0.5], [0.25, 0.0, 0.0]])
