from __future__ import annotations

import math
import time as _time
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np

from .types import DetectionLevel, VerticalDirection


# ----------------------------
# Device metadata
# ----------------------------

@dataclass(frozen=True)
class DeviceInfo:
    """A discoverable sensor device."""

    id: str
    name: str
    vendor: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SourceConfig:
    """Configuration achieved after a driver configures the device."""

    sample_rate_hz: float
    units: str = "uT"

    def __post_init__(self) -> None:
        if self.sample_rate_hz <= 0:
            raise ValueError("sample_rate_hz must be positive")


# ----------------------------
# Streaming data models
# ----------------------------

@dataclass(frozen=True)
class RawSample:
    """One magnetometer observation in microtesla.

    The magnitude is derived from the components and never stored
    independently.
    """

    x: float
    y: float
    z: float
    timestamp: float = field(default_factory=_time.monotonic)

    @classmethod
    def from_vector(cls, vector, timestamp: Optional[float] = None) -> "RawSample":
        arr = np.asarray(vector, dtype=np.float64).reshape(-1)
        if arr.shape[0] != 3:
            raise ValueError(f"vector must have 3 components, got {arr.shape[0]}")
        if timestamp is None:
            timestamp = _time.monotonic()
        return cls(float(arr[0]), float(arr[1]), float(arr[2]), float(timestamp))

    @property
    def magnitude(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    @property
    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y) and math.isfinite(self.z)

    def channels(self) -> np.ndarray:
        """Return ``(magnitude, x, y, z)`` as a float64 vector."""
        return np.array((self.magnitude, self.x, self.y, self.z), dtype=np.float64)


@dataclass(frozen=True)
class DetectionSnapshot:
    """Read-only view of the processor output after one ``process()`` call.

    Sinks must treat every derived field as invalid while
    ``is_calibrated`` is False.
    """

    delta: float
    normalized_strength: float
    detection_level: DetectionLevel
    detection_angle: float
    detection_distance: float
    vertical_delta: float
    vertical_direction: VerticalDirection
    is_calibrated: bool
    is_detecting: bool
    baseline: float
    raw_magnitude: float = 0.0
    smoothed_magnitude: float = 0.0
    timestamp: float = 0.0

    def as_dict(self) -> dict[str, Any]:
        return {
            "delta": self.delta,
            "normalized_strength": self.normalized_strength,
            "detection_level": self.detection_level.value,
            "detection_angle": self.detection_angle,
            "detection_distance": self.detection_distance,
            "vertical_delta": self.vertical_delta,
            "vertical_direction": self.vertical_direction.value,
            "is_calibrated": self.is_calibrated,
            "is_detecting": self.is_detecting,
            "baseline": self.baseline,
            "raw_magnitude": self.raw_magnitude,
            "smoothed_magnitude": self.smoothed_magnitude,
            "timestamp": self.timestamp,
        }


def _restore_end_of_stream() -> "_EndOfStreamSentinel":
    return EndOfStream


class _EndOfStreamSentinel:
    __slots__ = ()

    def __repr__(self) -> str:
        return "EndOfStream"

    def __reduce__(self):
        return (_restore_end_of_stream, ())


EndOfStream = _EndOfStreamSentinel()


__all__ = [
    "DeviceInfo",
    "SourceConfig",
    "RawSample",
    "DetectionSnapshot",
    "EndOfStream",
]
