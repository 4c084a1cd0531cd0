from __future__ import annotations

from shared.types import DetectionLevel


def classify_level(
    delta: float,
    *,
    detection_threshold: float = 15.0,
    moderate_threshold: float = 30.0,
    strong_threshold: float = 50.0,
    very_strong_threshold: float = 120.0,
) -> DetectionLevel:
    """Bucket an absolute magnitude delta (uT) into a detection level.

    Buckets are half-open ``[lower, upper)``: a delta sitting exactly on a
    boundary belongs to the higher level.
    """
    if delta < detection_threshold:
        return DetectionLevel.NONE
    if delta < moderate_threshold:
        return DetectionLevel.WEAK
    if delta < strong_threshold:
        return DetectionLevel.MODERATE
    if delta < very_strong_threshold:
        return DetectionLevel.STRONG
    return DetectionLevel.VERY_STRONG


def normalize_strength(delta: float, max_delta: float = 300.0) -> float:
    """Map a delta onto [0, 1], saturating at ``max_delta``."""
    if max_delta <= 0:
        raise ValueError("max_delta must be positive")
    return min(abs(delta) / max_delta, 1.0)


__all__ = ["classify_level", "normalize_strength"]
