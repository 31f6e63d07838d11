"""Point normalization and pre-simplification."""

from .normalizer import NormalizationResult, normalize_points, parse_years
from .sampling import grid_sample, simplify_points

__all__ = [
    "NormalizationResult",
    "normalize_points",
    "parse_years",
    "grid_sample",
    "simplify_points",
]
