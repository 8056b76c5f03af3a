"""Input/output utilities for spin assignments and search results."""

import os
import sys
import numpy as np
import h5py
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, List, Optional, Sequence

from .constants import STRUCTURE_EXTENSIONS
from ..core.structure import CrystalStructure, SpinState


_LETTERS = {
    'u': SpinState.UP,
    'd': SpinState.DOWN,
    'n': SpinState.NONE,
}

UNICODE_ARROWS = {SpinState.UP: '↑', SpinState.DOWN: '↓', SpinState.NONE: '—'}
ASCII_ARROWS = {SpinState.UP: '^', SpinState.DOWN: 'v', SpinState.NONE: '-'}


def spin_to_string(spin) -> str:
    """Single-letter form of a spin: u, d or n."""
    return SpinState(int(spin)).letter


def string_to_spin(text: str) -> SpinState:
    """
    Parse one spin letter (case-insensitive).

    Args:
        text: 'u', 'd' or 'n'

    Returns:
        Corresponding SpinState
    """
    key = text.strip().lower()
    if key not in _LETTERS:
        raise ValueError(f"Invalid spin designation: {text!r} (expected u, d or n)")
    return _LETTERS[key]


def parse_spins(text: str, n_atoms: int) -> List[SpinState]:
    """
    Parse a whitespace-separated spin string for a whole structure.

    An empty string, or a lone "nn", marks every atom as non-magnetic.

    Args:
        text: Spin letters, e.g. "u d n n"
        n_atoms: Number of atoms in the structure

    Returns:
        One SpinState per atom
    """
    tokens = text.split()

    if not tokens or (len(tokens) == 1 and tokens[0].lower() == 'nn'):
        return [SpinState.NONE] * n_atoms

    if len(tokens) != n_atoms:
        raise ValueError(f"Expected {n_atoms} spin designations, got {len(tokens)}")

    return [string_to_spin(token) for token in tokens]


def use_unicode() -> bool:
    """Whether console output should use arrow glyphs."""
    setting = os.environ.get('AMCHECK_USE_UNICODE')
    if setting is not None:
        return setting.strip().lower() not in ('0', 'false', 'no', '')
    return not sys.platform.startswith('win')


def format_spin_pattern(spins: Sequence[int]) -> str:
    """Compact rendering such as ``u d n n``."""
    return ' '.join(spin_to_string(s) for s in spins)


def format_assignment(
    symbols: Sequence[str],
    spins: Sequence[int],
    unicode: Optional[bool] = None
) -> str:
    """Verbose rendering such as ``Fe(↑) Fe(↓) F(—)``."""
    if unicode is None:
        unicode = use_unicode()
    arrows = UNICODE_ARROWS if unicode else ASCII_ARROWS
    return ' '.join(f"{symbol}({arrows[SpinState(int(s))]})" for symbol, s in zip(symbols, spins))


def format_result_line(
    candidate_id: int,
    symbols: Sequence[str],
    spins: Sequence[int],
    unicode: Optional[bool] = None
) -> str:
    """One report line: ``Config #      12: u d n | Fe(↑) Fe(↓) F(—)``."""
    return (f"Config #{candidate_id:>8}: {format_spin_pattern(spins)} | "
            f"{format_assignment(symbols, spins, unicode)}")


def default_report_filename(
    input_filename: Optional[str] = None,
    sampled: bool = False,
    timestamp: Optional[datetime] = None
) -> str:
    """
    Build a timestamped report name from the structure filename.

    Args:
        input_filename: Path of the structure file
        sampled: Name a sampling-mode report
        timestamp: Time to embed (default: now)

    Returns:
        e.g. ``MnF2_amcheck_results_20240101_120000.txt``
    """
    base = (input_filename or '').replace('\\', '/').split('/')[-1]

    for ext in STRUCTURE_EXTENSIONS:
        if base.endswith(ext):
            base = base[:-len(ext)]
            break

    if not base or base == 'POSCAR':
        base = 'structure'

    if timestamp is None:
        timestamp = datetime.now()

    kind = 'sampled_results' if sampled else 'results'
    return f"{base}_amcheck_{kind}_{timestamp.strftime('%Y%m%d_%H%M%S')}.txt"


def write_search_report(
    filename: str,
    structure: CrystalStructure,
    summary: Dict[str, Any]
):
    """
    Write accepted configurations to a plain-text report.

    Args:
        filename: Output path
        structure: Searched structure
        summary: Search summary as returned by ConfigurationSearch
    """
    sampled = summary['method'] == 'sampling'
    title = "Sampled Altermagnetic Spin Configurations" if sampled else "Altermagnetic Spin Configurations"
    n_magnetic = summary.get('n_magnetic', len(structure.magnetic_indices()))

    lines = [
        f"# AMCheck - {title}",
        f"# Generated on: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"# Structure: {structure.n_atoms} atoms ({n_magnetic} magnetic)",
    ]
    if structure.spacegroup:
        lines.append(f"# Space group: {structure.spacegroup}")
    lines += [
        f"# Search method: {summary['method']}",
        f"# Backend: {summary['backend']}",
        f"# Total configurations tested: {summary['tested']}",
        f"# Altermagnetic configurations found: {summary['n_accepted']}",
        f"# Tolerance: {summary['tolerance']}",
    ]

    if sampled:
        lines.append(f"# Success rate: {summary['success_rate']:.4f}%")
        if 'completion_rate' in summary:
            lines.append(f"# Completion rate: {summary['completion_rate']:.1f}% of the sample budget")
        if not summary['exhaustive']:
            lines.append("# Sampling is not exhaustive: configurations outside the sample were not tested")
    if summary.get('approximate'):
        lines.append("# Accelerated screening without exact verification: results are approximate")

    lines.append("#")
    lines.append("# Atomic structure:")
    for i, (symbol, position) in enumerate(zip(structure.symbols, structure.positions)):
        x, y, z = position
        lines.append(f"# Atom {i + 1:>2}: {symbol} at ({x:.6f}, {y:.6f}, {z:.6f})")

    lines += [
        "#",
        "# Format: ConfigID | Spin_Pattern | Detailed_Assignment",
        "#         u = up, d = down, n = none",
        "#         ↑ = spin up, ↓ = spin down, — = non-magnetic",
        "#",
        "",
    ]

    for result in summary['results']:
        lines.append(format_result_line(result.candidate_id, structure.symbols,
                                        result.spins, unicode=True))

    with open(filename, 'w', encoding='utf-8') as f:
        f.write('\n'.join(lines) + '\n')


def save_search_results(
    filename: str,
    summary: Dict[str, Any],
    format: str = "npz"
):
    """
    Save accepted configurations in binary form.

    Stores the candidate ids, an (n_accepted, n_atoms) spin matrix and the
    scalar metadata of the summary.

    Args:
        filename: Output filename
        summary: Search summary as returned by ConfigurationSearch
        format: File format ("npz", "hdf5")
    """
    results = summary['results']
    candidate_ids = np.array([r.candidate_id for r in results], dtype=np.uint64)
    spins = np.array([[int(s) for s in r.spins] for r in results], dtype=np.int8)

    metadata = {
        key: value for key, value in summary.items()
        if isinstance(value, (bool, int, float, str))
    }

    if format == "hdf5":
        with h5py.File(filename, 'w') as f:
            f.create_dataset('candidate_ids', data=candidate_ids)
            f.create_dataset('spins', data=spins)
            for key, value in metadata.items():
                f.attrs[key] = value

    elif format == "npz":
        np.savez_compressed(filename, candidate_ids=candidate_ids, spins=spins, **metadata)

    else:
        raise ValueError(f"Unknown format: {format}")


def load_search_results(
    filename: str,
    format: str = "auto"
) -> Dict[str, Any]:
    """
    Load results written by ``save_search_results``.

    Args:
        filename: Input filename
        format: File format ("auto", "hdf5", "npz")

    Returns:
        Dictionary with 'candidate_ids', 'spins' and the stored metadata
    """
    filepath = Path(filename)

    if format == "auto":
        if filepath.suffix in [".h5", ".hdf5"]:
            format = "hdf5"
        elif filepath.suffix == ".npz":
            format = "npz"
        else:
            raise ValueError(f"Cannot determine format from filename: {filename}")

    if format == "hdf5":
        with h5py.File(filename, 'r') as f:
            results = dict(f.attrs)
            results['candidate_ids'] = f['candidate_ids'][:]
            results['spins'] = f['spins'][:]

    elif format == "npz":
        with np.load(filename) as data:
            results = {key: data[key] for key in data.files}

    else:
        raise ValueError(f"Unknown format: {format}")

    return results
