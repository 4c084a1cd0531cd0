from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from shared.models import DetectionSnapshot
from shared.types import DetectionLevel

from .settings import FeedbackSettings


@dataclass(frozen=True)
class FeedbackCommand:
    """What the audio/haptic drivers should do after one sample.

    ``tone_hz`` of 0 means silence. ``haptic_intensity`` is None when no
    pulse is due.
    """

    tone_hz: float
    haptic_intensity: Optional[float]
    level: DetectionLevel

    @property
    def silent(self) -> bool:
        return self.tone_hz == 0.0 and self.haptic_intensity is None


SILENCE = FeedbackCommand(tone_hz=0.0, haptic_intensity=None, level=DetectionLevel.NONE)


class FeedbackSink(Protocol):
    """Audio tone / haptic driver. Lives outside the processing core."""

    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...

    def apply(self, command: FeedbackCommand) -> None:
        ...


class DisplaySink(Protocol):
    """Renderer for level, delta, angle, distance and history."""

    def update(self, snapshot: DetectionSnapshot, history: list[float]) -> None:
        ...


class FeedbackPlanner:
    """Maps calibrated snapshots onto tone pitch and rate-limited haptic pulses."""

    def __init__(self, settings: Optional[FeedbackSettings] = None) -> None:
        self._settings = settings or FeedbackSettings()
        self._settings.validate()
        self._last_haptic_time: Optional[float] = None

    @property
    def settings(self) -> FeedbackSettings:
        return self._settings

    def update_settings(self, settings: FeedbackSettings) -> None:
        settings.validate()
        self._settings = settings

    def reset(self) -> None:
        self._last_haptic_time = None

    def tone_for(self, strength: float, level: DetectionLevel) -> float:
        settings = self._settings
        if not settings.audio_enabled or not level.is_detecting:
            return 0.0
        strength = min(max(strength, 0.0), 1.0)
        return settings.min_frequency_hz + (settings.max_frequency_hz - settings.min_frequency_hz) * strength

    def plan(self, snapshot: DetectionSnapshot, now: float) -> FeedbackCommand:
        if not snapshot.is_calibrated:
            return SILENCE

        level = snapshot.detection_level
        strength = snapshot.normalized_strength
        tone = self.tone_for(strength, level)

        haptic: Optional[float] = None
        if self._settings.haptic_enabled and level.is_detecting:
            min_interval = self._settings.haptic_intervals.get(level)
            if min_interval is not None and (
                self._last_haptic_time is None or now - self._last_haptic_time >= min_interval
            ):
                self._last_haptic_time = now
                haptic = strength

        return FeedbackCommand(tone_hz=tone, haptic_intensity=haptic, level=level)


__all__ = [
    "DisplaySink",
    "FeedbackCommand",
    "FeedbackPlanner",
    "FeedbackSink",
    "SILENCE",
]
