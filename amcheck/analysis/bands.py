"""
Spin-splitting analysis of spin-polarised band structures.

A BAND.dat file starts with a ``# NKPTS & NBANDS: <nkpts> <nbands>`` header
and holds one ``# Band-Index <n>`` block per band, each with up to
``nkpts`` rows of ``k_path  E_up  E_down``. The largest |E_up - E_down|
over all bands decides the verdict: a splitting above the threshold means
the band structure is altermagnetic.
"""

import numpy as np
from typing import Any, Dict, List, Sequence, Tuple

from ..utils.constants import BAND_THRESHOLD


HEADER_MARKER = "# NKPTS & NBANDS:"
BAND_MARKER = "# Band-Index"


def parse_band_header(lines: Sequence[str]) -> Tuple[int, int]:
    """
    Read NKPTS and NBANDS from the file header.

    The search stops at the first band block. A header line with
    non-positive or unreadable counts is skipped.

    Raises:
        ValueError: If no valid header precedes the first band block
    """
    for line in lines:
        if HEADER_MARKER in line:
            fields = line.split(':', 1)[1].split()
            try:
                nkpts, nbands = int(fields[0]), int(fields[1])
            except (IndexError, ValueError):
                continue
            if nkpts > 0 and nbands > 0:
                return nkpts, nbands
        if BAND_MARKER in line:
            break

    raise ValueError("Could not find NKPTS & NBANDS header in BAND.dat file")


def parse_band_blocks(lines: Sequence[str], nkpts: int) -> List[Tuple[int, np.ndarray]]:
    """
    Split the file into bands.

    Returns:
        List of (band index, (n_points, 3) array of k_path, E_up, E_down)
    """
    blocks = []
    rows = None

    for line in lines:
        if BAND_MARKER in line:
            fields = line.split(BAND_MARKER, 1)[1].replace(':', ' ').split()
            try:
                band_index = int(fields[0])
            except (IndexError, ValueError):
                band_index = len(blocks) + 1
            rows = []
            blocks.append((band_index, rows))
            continue

        stripped = line.strip()
        if rows is None or not stripped or stripped.startswith('#') or len(rows) >= nkpts:
            continue

        try:
            rows.append([float(value) for value in stripped.split()[:3]])
        except ValueError:
            continue
        if len(rows[-1]) < 3:
            rows.pop()

    return [(index, np.array(rows, dtype=float).reshape(-1, 3)) for index, rows in blocks]


def analyze_band_file(
    filename: str,
    threshold: float = BAND_THRESHOLD,
    verbose: bool = False
) -> Dict[str, Any]:
    """
    Spin-splitting analysis of a BAND.dat file.

    Args:
        filename: Path to BAND.dat
        threshold: Splitting in eV above which the bands count as altermagnetic
        verbose: Print the summary and the band ranking

    Returns:
        Dictionary with the per-band data, the largest splitting and where it
        occurs, summary statistics and the 'is_altermagnetic' verdict

    Raises:
        ValueError: If the header is missing or the file holds no bands
    """
    with open(filename, 'r') as f:
        lines = f.read().splitlines()

    nkpts, nbands = parse_band_header(lines)
    blocks = parse_band_blocks(lines, nkpts)
    if not blocks:
        raise ValueError("No band data found in file")

    bands = []
    max_difference = 0.0
    max_band_index = -1
    max_point_index = 0

    for band_index, data in blocks:
        difference = np.abs(data[:, 1] - data[:, 2])
        point = int(np.argmax(difference)) if len(difference) else 0
        band_max = float(difference[point]) if len(difference) else 0.0

        bands.append({
            'band_index': band_index,
            'k_path': data[:, 0],
            'spin_up': data[:, 1],
            'spin_down': data[:, 2],
            'energy_difference': difference,
            'max_difference': band_max,
            'max_point_index': point,
        })

        # First band reaching the maximum wins ties
        if band_max > max_difference:
            max_difference = band_max
            max_band_index = band_index
            max_point_index = point

    all_differences = np.concatenate([band['energy_difference'] for band in bands])

    results = {
        'filename': filename,
        'nkpts': nkpts,
        'nbands': nbands,
        'bands': bands,
        'threshold': threshold,
        'max_difference': max_difference,
        'max_band_index': max_band_index,
        'max_point_index': max_point_index,
        'average_difference': float(all_differences.mean()) if len(all_differences) else 0.0,
        'n_significant_bands': sum(band['max_difference'] > threshold for band in bands),
        'is_altermagnetic': max_difference > threshold,
    }

    if verbose:
        print_band_summary(results, detailed=True)

    return results


def rank_bands(results: Dict[str, Any]) -> List[Tuple[int, float]]:
    """(band index, max splitting) pairs, largest splitting first."""
    pairs = [(band['band_index'], band['max_difference']) for band in results['bands']]
    return sorted(pairs, key=lambda pair: pair[1], reverse=True)


def print_band_summary(results: Dict[str, Any], detailed: bool = False, top: int = 10):
    print(f"📈 Band analysis: {results['filename']}")
    print(f"   k-points: {results['nkpts']}, bands: {results['nbands']} "
          f"({len(results['bands'])} analyzed)")
    print(f"   Maximum spin up/down energy difference: {results['max_difference']:.6f} eV")

    if results['max_band_index'] >= 0:
        band = next(b for b in results['bands'] if b['band_index'] == results['max_band_index'])
        point = results['max_point_index']
        print(f"   Found in band {band['band_index']} at k-point index {point}")
        print(f"      k-path coordinate: {band['k_path'][point]:.6f}")
        print(f"      Spin-up energy:    {band['spin_up'][point]:.6f} eV")
        print(f"      Spin-down energy:  {band['spin_down'][point]:.6f} eV")
    else:
        print("   No spin splitting found in any band")

    print(f"   Average energy difference: {results['average_difference']:.6f} eV")
    print(f"   Bands above {results['threshold']} eV: {results['n_significant_bands']}")

    if detailed:
        ranking = rank_bands(results)
        print("\n   Rank | Band | Max difference (eV) | Significant")
        for rank, (band_index, difference) in enumerate(ranking[:top], 1):
            significant = "YES" if difference > results['threshold'] else "NO"
            print(f"   {rank:>4} | {band_index:>4} | {difference:>19.6f} | {significant}")
        if len(ranking) > top:
            print(f"   ... and {len(ranking) - top} more bands")
