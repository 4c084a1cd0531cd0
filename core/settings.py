from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass, field, replace
from typing import Callable, Dict, Generic, Optional, TypeVar

from shared.types import DetectionLevel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessorSettings:
    """Tunables of the signal processor.

    ``filter_alpha`` is the weight of each new sample in the exponential
    smoother; 0.15 was picked by ear and eye, not derived. Field values are
    in microtesla unless noted otherwise.
    """

    filter_alpha: float = 0.15
    calibration_count: int = 30
    detection_threshold: float = 15.0
    moderate_threshold: float = 30.0
    strong_threshold: float = 50.0
    very_strong_threshold: float = 120.0
    max_delta: float = 300.0
    distance_scale: float = 2.5
    max_distance: float = 0.85
    vertical_dead_zone: float = 5.0

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)

    def validate(self) -> None:
        if not (0.0 < self.filter_alpha <= 1.0):
            raise ValueError("filter_alpha must be in (0, 1]")
        if not isinstance(self.calibration_count, int) or self.calibration_count <= 0:
            raise ValueError("calibration_count must be a positive integer")
        thresholds = (
            self.detection_threshold,
            self.moderate_threshold,
            self.strong_threshold,
            self.very_strong_threshold,
        )
        if thresholds[0] < 0:
            raise ValueError("detection_threshold must be non-negative")
        if any(lo >= hi for lo, hi in zip(thresholds, thresholds[1:])):
            raise ValueError("detection thresholds must be strictly increasing")
        if self.max_delta <= 0:
            raise ValueError("max_delta must be positive")
        if self.distance_scale <= 0:
            raise ValueError("distance_scale must be positive")
        if not (0.0 < self.max_distance <= 1.0):
            raise ValueError("max_distance must be in (0, 1]")
        if self.vertical_dead_zone < 0:
            raise ValueError("vertical_dead_zone must be non-negative")


def _default_haptic_intervals() -> Dict[DetectionLevel, float]:
    return {
        DetectionLevel.WEAK: 0.5,
        DetectionLevel.MODERATE: 0.25,
        DetectionLevel.STRONG: 0.1,
        DetectionLevel.VERY_STRONG: 0.05,
    }


@dataclass(frozen=True)
class FeedbackSettings:
    """Mapping from detection strength to tone pitch and haptic pulse rate."""

    audio_enabled: bool = True
    haptic_enabled: bool = True
    min_frequency_hz: float = 200.0
    max_frequency_hz: float = 1800.0
    haptic_intervals: Dict[DetectionLevel, float] = field(default_factory=_default_haptic_intervals)

    def validate(self) -> None:
        if self.min_frequency_hz <= 0:
            raise ValueError("min_frequency_hz must be positive")
        if self.max_frequency_hz < self.min_frequency_hz:
            raise ValueError("max_frequency_hz must not be below min_frequency_hz")
        for level, interval in self.haptic_intervals.items():
            if level is DetectionLevel.NONE:
                raise ValueError("no haptic interval may be configured for DetectionLevel.NONE")
            if interval < 0:
                raise ValueError(f"haptic interval for {level.value} must be non-negative")


@dataclass(frozen=True)
class SessionSettings:
    history_size: int = 80
    poll_timeout: float = 0.05

    def validate(self) -> None:
        if self.history_size <= 0:
            raise ValueError("history_size must be positive")
        if self.poll_timeout <= 0:
            raise ValueError("poll_timeout must be positive")


S = TypeVar("S", ProcessorSettings, FeedbackSettings, SessionSettings)


class SettingsStore(Generic[S]):
    """
    Thread-safe settings container that lets several consumers observe
    changes (e.g. a settings screen retuning a running session).
    """

    def __init__(self, initial: S) -> None:
        initial.validate()
        self._settings = initial
        self._lock = threading.Lock()
        self._subscribers: Dict[int, Callable[[S], None]] = {}
        self._next_token = 0

    def get(self) -> S:
        with self._lock:
            return self._settings

    def update(self, **kwargs) -> S:
        with self._lock:
            new_settings = replace(self._settings, **kwargs)
            new_settings.validate()
            self._settings = new_settings
            callbacks = list(self._subscribers.values())
        for callback in callbacks:
            try:
                callback(new_settings)
            except Exception as exc:
                logger.warning("Settings subscriber callback failed: %s", exc)
                continue
        return new_settings

    def subscribe(self, callback: Callable[[S], None], *, replay: bool = True) -> Callable[[], None]:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = callback
            snapshot = self._settings
        if replay:
            callback(snapshot)

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(token, None)

        return unsubscribe


__all__ = [
    "FeedbackSettings",
    "ProcessorSettings",
    "SessionSettings",
    "SettingsStore",
]
