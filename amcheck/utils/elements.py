"""
Chemical element classification for the magnetic sublattice.
"""

from typing import Callable, Iterable, List

from ase.data import atomic_numbers


# Elements whose ions commonly carry a local moment: 3d/4d/5d transition
# metals, lanthanides and the light actinides.
MAGNETIC_ELEMENTS = frozenset([
    'Sc', 'Ti', 'V', 'Cr', 'Mn', 'Fe', 'Co', 'Ni', 'Cu',
    'Zr', 'Nb', 'Mo', 'Tc', 'Ru', 'Rh', 'Pd',
    'Hf', 'Ta', 'W', 'Re', 'Os', 'Ir', 'Pt',
    'Ce', 'Pr', 'Nd', 'Pm', 'Sm', 'Eu', 'Gd', 'Tb', 'Dy', 'Ho', 'Er',
    'Tm', 'Yb',
    'U', 'Np', 'Pu', 'Am', 'Cm', 'Bk', 'Cf',
])


def normalize_symbol(symbol: str) -> str:
    """
    Normalise an element label such as ``'fe'``, ``'Fe3+'`` or ``'Fe_pv'``.

    Args:
        symbol: Element label as found in a structure file

    Returns:
        Canonical chemical symbol
    """
    letters = ''.join(ch for ch in symbol.strip() if ch.isalpha())
    for length in (2, 1):
        candidate = letters[:length].capitalize()
        if atomic_numbers.get(candidate, 0) > 0:
            return candidate
    raise ValueError(f"Unknown chemical element: {symbol!r}")


def is_magnetic_element(symbol: str) -> bool:
    """Return True if the element may carry a magnetic moment."""
    try:
        return normalize_symbol(symbol) in MAGNETIC_ELEMENTS
    except ValueError:
        return False


def get_atomic_number(symbol: str) -> int:
    """Atomic number of an element label."""
    return atomic_numbers[normalize_symbol(symbol)]


def magnetic_indices(
    symbols: Iterable[str],
    predicate: Callable[[str], bool] = is_magnetic_element
) -> List[int]:
    """Indices of the atoms selected by the magnetic-element predicate."""
    return [i for i, symbol in enumerate(symbols) if predicate(symbol)]
