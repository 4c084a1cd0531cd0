from __future__ import annotations

import math
from typing import Tuple

from shared.types import VerticalDirection


def planar_direction(
    dx: float,
    dy: float,
    *,
    max_delta: float = 300.0,
    distance_scale: float = 2.5,
    max_distance: float = 0.85,
) -> Tuple[float, float]:
    """Return ``(angle, distance)`` of the planar deviation ``(dx, dy)``.

    ``angle`` is ``atan2(dy, dx)`` in radians. ``distance`` is the planar
    magnitude relative to ``max_delta``, stretched by ``distance_scale`` and
    capped at ``max_distance`` so the radar blip stays inside the display.
    """
    angle = math.atan2(dy, dx)
    xy_magnitude = math.hypot(dx, dy)
    distance = min(xy_magnitude / max_delta * distance_scale, max_distance)
    return angle, distance


def classify_vertical(vertical_delta: float, dead_zone: float = 5.0) -> VerticalDirection:
    """Classify the Z-axis deviation from baseline.

    Negative deviations point above the sensor, positive ones below; anything
    within ``dead_zone`` of zero is level.
    """
    if vertical_delta < -dead_zone:
        return VerticalDirection.ABOVE
    if vertical_delta > dead_zone:
        return VerticalDirection.BELOW
    return VerticalDirection.LEVEL


__all__ = ["classify_vertical", "planar_direction"]
