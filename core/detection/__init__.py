from .direction import classify_vertical, planar_direction
from .levels import classify_level, normalize_strength

__all__ = [
    "classify_level",
    "classify_vertical",
    "normalize_strength",
    "planar_direction",
]
