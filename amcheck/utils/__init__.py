"""Utility functions and helpers."""

from .constants import DEFAULT_TOLERANCE, SEARCH_DEFAULTS
from .random import make_generator, draw_unique_candidates
from .elements import MAGNETIC_ELEMENTS, is_magnetic_element

__all__ = [
    "DEFAULT_TOLERANCE",
    "make_generator",
    "draw_unique_candidates",
    "SEARCH_DEFAULTS",
    "MAGNETIC_ELEMENTS",
    "is_magnetic_element"
]
