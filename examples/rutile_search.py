#!/usr/bin/env python3
"""
Altermagnet search example using AMCheck.

This example builds rutile MnF2, checks the Neel configuration directly,
then searches all spin configurations of the Mn sublattice and runs the
anomalous Hall symmetry analysis on the result.
"""

import numpy as np
from ase import Atoms

# Import AMCheck components
from amcheck import CrystalStructure, ConfigurationSearch, SpinState, is_altermagnet
from amcheck.analysis import analyze_anomalous_hall


def build_mnf2(a: float = 4.87, c: float = 3.31, x: float = 0.305) -> Atoms:
    """Rutile MnF2 (P4_2/mnm) with the fluorine parameter ``x``."""
    scaled_positions = [
        [0.0, 0.0, 0.0],
        [0.5, 0.5, 0.5],
        [x, x, 0.0],
        [-x, -x, 0.0],
        [0.5 + x, 0.5 - x, 0.5],
        [0.5 - x, 0.5 + x, 0.5],
    ]
    return Atoms(
        symbols=['Mn', 'Mn', 'F', 'F', 'F', 'F'],
        scaled_positions=scaled_positions,
        cell=np.diag([a, a, c]),
        pbc=True
    )


def main():
    """Run the MnF2 example."""

    print("AMCheck: Rutile MnF2 Example")
    print("=" * 40)

    structure = CrystalStructure.from_atoms(build_mnf2())
    print(f"Space group: {structure.spacegroup}")
    print(f"Symmetry operations: {len(structure.symmetry_operations)}")

    # Neel order: the two Mn sublattices antiparallel
    spins = [SpinState.UP, SpinState.DOWN] + [SpinState.NONE] * 4
    print(f"\nNeel configuration altermagnetic? {is_altermagnet(structure, spins, verbose=True)}")

    # Search every configuration of the Mn atoms
    search = ConfigurationSearch(structure, n_workers=2)
    summary = search.search_all(write_report=False)
    print(f"\nAccepted candidate ids: {summary['accepted']}")

    # Anomalous Hall analysis of the Neel state
    print()
    results = analyze_anomalous_hall(structure, spins, verbose=True)
    print(f"\nAnomalous Hall allowed: {results['has_anomalous_hall']}")


if __name__ == "__main__":
    main()
