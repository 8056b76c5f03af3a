"""Analysis and post-processing modules."""

from .hall import (
    magnetic_symmetry,
    symmetrized_conductivity_tensor,
    anomalous_hall_vector,
    label_tensor,
    analyze_anomalous_hall,
)
from .bands import (
    parse_band_header,
    parse_band_blocks,
    analyze_band_file,
    rank_bands,
    print_band_summary,
)

__all__ = [
    "magnetic_symmetry",
    "symmetrized_conductivity_tensor",
    "anomalous_hall_vector",
    "label_tensor",
    "analyze_anomalous_hall",
    "parse_band_header",
    "parse_band_blocks",
    "analyze_band_file",
    "rank_bands",
    "print_band_summary"
]
