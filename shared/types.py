from __future__ import annotations

from enum import Enum


class DetectionLevel(Enum):
    """Ordered severity buckets derived from the magnitude delta."""

    NONE = "none"
    WEAK = "weak"
    MODERATE = "moderate"
    STRONG = "strong"
    VERY_STRONG = "veryStrong"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)

    @property
    def is_detecting(self) -> bool:
        return self is not DetectionLevel.NONE

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, DetectionLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, DetectionLevel):
            return NotImplemented
        return self.rank <= other.rank


_LEVEL_ORDER = (
    DetectionLevel.NONE,
    DetectionLevel.WEAK,
    DetectionLevel.MODERATE,
    DetectionLevel.STRONG,
    DetectionLevel.VERY_STRONG,
)


class VerticalDirection(Enum):
    """Estimated position of the anomaly relative to the sensor plane."""

    ABOVE = "above"
    BELOW = "below"
    LEVEL = "level"


__all__ = ["DetectionLevel", "VerticalDirection"]
