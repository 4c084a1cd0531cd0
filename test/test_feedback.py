from __future__ import annotations

import pytest

from core.feedback import SILENCE, FeedbackPlanner
from core.settings import FeedbackSettings
from shared.models import DetectionSnapshot
from shared.types import DetectionLevel, VerticalDirection


def _snapshot(
    level: DetectionLevel,
    strength: float,
    *,
    calibrated: bool = True,
) -> DetectionSnapshot:
    return DetectionSnapshot(
        delta=strength * 300.0,
        normalized_strength=strength,
        detection_level=level,
        detection_angle=0.0,
        detection_distance=0.0,
        vertical_delta=0.0,
        vertical_direction=VerticalDirection.LEVEL,
        is_calibrated=calibrated,
        is_detecting=level.is_detecting,
        baseline=50.0,
    )


def test_uncalibrated_is_silent():
    planner = FeedbackPlanner()
    command = planner.plan(_snapshot(DetectionLevel.STRONG, 0.4, calibrated=False), now=0.0)
    assert command is SILENCE
    assert command.silent


def test_no_detection_is_silent():
    planner = FeedbackPlanner()
    command = planner.plan(_snapshot(DetectionLevel.NONE, 0.03), now=0.0)
    assert command.tone_hz == 0.0
    assert command.haptic_intensity is None


def test_tone_scales_with_strength():
    planner = FeedbackPlanner()
    low = planner.tone_for(0.1, DetectionLevel.WEAK)
    high = planner.tone_for(1.0, DetectionLevel.VERY_STRONG)
    assert low == pytest.approx(200.0 + 1600.0 * 0.1)
    assert high == pytest.approx(1800.0)
    assert planner.tone_for(5.0, DetectionLevel.VERY_STRONG) == pytest.approx(1800.0)


def test_haptic_pulses_are_rate_limited_per_level():
    planner = FeedbackPlanner()
    weak = _snapshot(DetectionLevel.WEAK, 0.06)

    assert planner.plan(weak, now=0.0).haptic_intensity == pytest.approx(0.06)
    assert planner.plan(weak, now=0.2).haptic_intensity is None
    assert planner.plan(weak, now=0.5).haptic_intensity is not None

    strong = _snapshot(DetectionLevel.VERY_STRONG, 0.8)
    assert planner.plan(strong, now=0.52).haptic_intensity is None
    assert planner.plan(strong, now=0.56).haptic_intensity == pytest.approx(0.8)


def test_disabled_outputs():
    planner = FeedbackPlanner(FeedbackSettings(audio_enabled=False, haptic_enabled=False))
    command = planner.plan(_snapshot(DetectionLevel.STRONG, 0.3), now=0.0)
    assert command.silent
    assert command.level is DetectionLevel.STRONG


def test_reset_allows_immediate_pulse():
    planner = FeedbackPlanner()
    weak = _snapshot(DetectionLevel.WEAK, 0.06)
    planner.plan(weak, now=10.0)
    planner.reset()
    assert planner.plan(weak, now=10.1).haptic_intensity is not None


def test_invalid_settings():
    with pytest.raises(ValueError):
        FeedbackPlanner(FeedbackSettings(min_frequency_hz=900.0, max_frequency_hz=400.0))
    with pytest.raises(ValueError):
        FeedbackSettings(haptic_intervals={DetectionLevel.NONE: 0.1}).validate()
