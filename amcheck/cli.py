"""
Command-line interface for AMCheck.
"""

import argparse
import sys
from typing import List

import numpy as np

from . import CrystalStructure, ConfigurationSearch, SpinState, is_altermagnet
from .analysis import analyze_anomalous_hall, analyze_band_file, print_band_summary
from .utils.constants import BAND_THRESHOLD, DEFAULT_TOLERANCE, SEARCH_DEFAULTS
from .utils.io import format_assignment, parse_spins, save_search_results


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="AMCheck: symmetry-based detection of altermagnetism",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('structure', help='Structure file (POSCAR, CIF, etc.)')
    common.add_argument('-t', '--tolerance', type=float, default=DEFAULT_TOLERANCE,
                        help=f'Classification tolerance (default: {DEFAULT_TOLERANCE})')
    common.add_argument('-s', '--symprec', type=float, default=DEFAULT_TOLERANCE,
                        help=f'spglib symmetry precision (default: {DEFAULT_TOLERANCE})')
    common.add_argument('-v', '--verbose', action='store_true',
                        help='Print detailed analysis')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Single configuration check
    check_parser = subparsers.add_parser('check', parents=[common],
                                         help='Check whether a spin configuration is altermagnetic')
    check_parser.add_argument('--spins', default=None,
                              help='Spin of every atom, e.g. "u d n n" (prompted per orbit if omitted)')

    # Exhaustive search
    search_parser = subparsers.add_parser('search', parents=[common],
                                          help='Test every spin configuration of the magnetic atoms')
    _add_search_arguments(search_parser)
    search_parser.add_argument('-y', '--yes', action='store_true',
                               help='Run large exhaustive searches without asking')

    # Random sampling
    sample_parser = subparsers.add_parser('sample', parents=[common],
                                          help='Test a random sample of spin configurations')
    _add_search_arguments(sample_parser)
    sample_parser.add_argument('--max-samples', type=int, default=SEARCH_DEFAULTS['sampling_max_samples'],
                               help=f"Sample budget (default: {SEARCH_DEFAULTS['sampling_max_samples']})")
    sample_parser.add_argument('--batch-size', type=int, default=SEARCH_DEFAULTS['sampling_batch_size'],
                               help=f"Candidates per batch (default: {SEARCH_DEFAULTS['sampling_batch_size']})")
    sample_parser.add_argument('--target', type=int, default=SEARCH_DEFAULTS['sampling_target_found'],
                               help=f"Stop after this many found (default: {SEARCH_DEFAULTS['sampling_target_found']})")
    sample_parser.add_argument('--max-time', type=float, default=None,
                               help='Time limit in seconds (default: none)')
    sample_parser.add_argument('--seed', type=int, default=None,
                               help='Random seed')

    # Anomalous Hall analysis
    ahc_parser = subparsers.add_parser('ahc', parents=[common],
                                       help='Symmetry analysis of the anomalous Hall conductivity')
    ahc_parser.add_argument('--spins', default=None,
                            help='Spin of every atom, e.g. "u d n n" (prompted per orbit if omitted)')

    # Band-structure spin splitting
    bands_parser = subparsers.add_parser('bands', help='Spin-splitting analysis of a BAND.dat file')
    bands_parser.add_argument('band_file', help='Spin-polarised band structure (BAND.dat)')
    bands_parser.add_argument('--band-threshold', type=float, default=BAND_THRESHOLD,
                              help=f'Splitting in eV that counts as altermagnetic (default: {BAND_THRESHOLD})')
    bands_parser.add_argument('-v', '--verbose', action='store_true',
                              help='Rank bands by their splitting')

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return

    try:
        if args.command == 'check':
            run_check(args)
        elif args.command == 'search':
            run_search(args)
        elif args.command == 'sample':
            run_sample(args)
        elif args.command == 'ahc':
            run_ahc(args)
        elif args.command == 'bands':
            run_bands(args)
    except Exception as e:
        print(f"Error: {e}")
        sys.exit(1)


def _add_search_arguments(parser):
    parser.add_argument('--backend', default='cpu', choices=['cpu', 'numba', 'auto'],
                        help='Execution backend (default: cpu)')
    parser.add_argument('--workers', type=int, default=None,
                        help='Worker threads for the CPU backend (default: all cores)')
    parser.add_argument('--no-verify', action='store_true',
                        help='Keep raw accelerator results without exact re-check')
    parser.add_argument('-o', '--output', default=None,
                        help='Report filename (default: derived from the structure name)')
    parser.add_argument('--save', default=None,
                        help='Also save results as .npz or .h5')


def load_structure(args) -> CrystalStructure:
    print(f"Processing: {args.structure}")
    structure = CrystalStructure.from_file(args.structure, symprec=args.symprec)
    print(f"Structure loaded: {structure.n_atoms} atoms")
    print(f"Space group: {structure.spacegroup or 'unknown'}")
    if args.verbose:
        print(f"Number of symmetry operations: {len(structure.symmetry_operations)}")
    return structure


def assign_spins_interactively(structure: CrystalStructure) -> List[SpinState]:
    """Prompt for the spins of every orbit with more than one atom."""
    spins = [SpinState.NONE] * structure.n_atoms
    print("Assigning spins to atomic orbits ('u', 'd' or 'n' per atom, empty for non-magnetic)")

    for orbit_id, atom_ids in structure.orbits().items():
        print(f"\nOrbit of {structure.symbols[atom_ids[0]]} atoms at positions:")
        for i, atom in enumerate(atom_ids):
            x, y, z = structure.positions[atom]
            print(f"{atom + 1} ({i + 1}) {x:.6f} {y:.6f} {z:.6f}")

        if len(atom_ids) == 1:
            print("Only one atom in the orbit: skipping.")
            continue

        try:
            orbit_spins = parse_spins(input("Spins: "), len(atom_ids))
        except ValueError as e:
            print(f"Error: {e}")
            print("Setting all atoms in this orbit as non-magnetic.")
            continue

        for atom, spin in zip(atom_ids, orbit_spins):
            spins[atom] = spin

    return spins


def _get_spins(args, structure: CrystalStructure) -> List[SpinState]:
    if args.spins is not None:
        return parse_spins(args.spins, structure.n_atoms)
    return assign_spins_interactively(structure)


def _ask(question: str, default: bool) -> bool:
    answer = input(question).strip().lower()
    if not answer:
        return default
    return answer in ('y', 'yes')


def run_check(args):
    """Check a single spin configuration."""
    structure = load_structure(args)
    spins = _get_spins(args, structure)

    print(f"\nSpins: {format_assignment(structure.symbols, spins)}")
    print("Performing altermagnet detection...")
    result = is_altermagnet(structure, spins, tol=args.tolerance, verbose=args.verbose)

    if result:
        print("\n🎯 RESULT: ALTERMAGNET!")
        print("   Your material exhibits altermagnetic properties!")
    else:
        print("\nRESULT: NOT ALTERMAGNET")
        print("   Your material does not show altermagnetic behavior.")


def _make_search(args, structure: CrystalStructure) -> ConfigurationSearch:
    return ConfigurationSearch(
        structure,
        tolerance=args.tolerance,
        backend=args.backend,
        n_workers=args.workers,
        verify_accelerated=not args.no_verify,
        verbose=True
    )


def run_search(args):
    """Run an exhaustive configuration search."""
    structure = load_structure(args)
    search = _make_search(args, structure)

    if args.yes:
        confirm = lambda n_magnetic, total: True
    else:
        confirm = lambda n_magnetic, total: _ask(
            "\nDo you want to continue with the full exhaustive search? (y/N): ", False)
    offer_sampling = lambda: _ask(
        "\nAlternative: would you like to try a sampling approach? (Y/n): ", True)

    summary = search.search_all(
        confirm=confirm,
        offer_sampling=offer_sampling,
        report_path=args.output,
        input_filename=args.structure
    )
    _save(args, summary)


def run_sample(args):
    """Run a sampling search."""
    structure = load_structure(args)
    search = _make_search(args, structure)

    summary = search.sample(
        max_samples=args.max_samples,
        batch_size=args.batch_size,
        target_found=args.target,
        max_time=args.max_time,
        seed=args.seed,
        report_path=args.output,
        input_filename=args.structure
    )
    _save(args, summary)


def _save(args, summary):
    if args.save is None:
        return
    format = "hdf5" if args.save.endswith(('.h5', '.hdf5')) else "npz"
    save_search_results(args.save, summary, format=format)
    print(f"Results saved to {args.save}")


def run_ahc(args):
    """Run the anomalous Hall symmetry analysis."""
    structure = load_structure(args)
    spins = _get_spins(args, structure)

    results = analyze_anomalous_hall(structure, spins, tol=args.tolerance, verbose=True)

    hall = results['hall_vector']
    if results['has_anomalous_hall']:
        print(f"\nAnomalous Hall effect is symmetry-allowed (|σ_H| = {np.linalg.norm(hall):.6f})")
    else:
        print("\nAnomalous Hall effect is forbidden by symmetry")


def run_bands(args):
    """Run the band-structure spin-splitting analysis."""
    print(f"Processing: {args.band_file}")
    results = analyze_band_file(args.band_file, threshold=args.band_threshold)
    print_band_summary(results, detailed=args.verbose)

    if results['is_altermagnetic']:
        print("\n🎯 RESULT: ALTERMAGNET (BY BANDS)!")
        print(f"   Spin splitting exceeds the threshold of {results['threshold']} eV.")
    else:
        print("\nRESULT: NOT ALTERMAGNET (BY BANDS)")
        print(f"   Spin splitting stays below the threshold of {results['threshold']} eV.")


if __name__ == "__main__":
    main()
