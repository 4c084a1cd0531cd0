"""
Streaming magnetometer processor.

Each raw sample runs through the same fixed pipeline:

1. Exponential smoothing of magnitude, x, y and z (also during calibration).
2. Baseline calibration from the first ``calibration_count`` raw samples.
   The sample that completes calibration produces no detection output.
3. Delta of the smoothed magnitude against the baseline, planar angle and
   radar distance from the x/y deviation, vertical deviation from z.
4. Normalization against ``max_delta`` and bucketing into a detection level.

The processor is not thread-safe; one owner feeds it samples sequentially.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

import numpy as np

from shared.models import DetectionSnapshot, RawSample
from shared.types import DetectionLevel, VerticalDirection

from .calibration import BaselineCalibrator
from .conditioning import ExponentialSmoother
from .detection import classify_level, classify_vertical, normalize_strength, planar_direction
from .settings import ProcessorSettings

logger = logging.getLogger(__name__)

# Channel order used for the smoother and calibrator vectors.
CHANNELS = ("magnitude", "x", "y", "z")
_MAG, _X, _Y, _Z = range(len(CHANNELS))


@dataclass
class ProcessorState:
    """Mutable state of one scan session."""

    raw_magnitude: float = 0.0
    smoothed_magnitude: float = 0.0
    smoothed_x: float = 0.0
    smoothed_y: float = 0.0
    smoothed_z: float = 0.0
    baseline: float = 0.0
    baseline_x: float = 0.0
    baseline_y: float = 0.0
    baseline_z: float = 0.0
    is_calibrated: bool = False
    delta: float = 0.0
    normalized_strength: float = 0.0
    detection_level: DetectionLevel = DetectionLevel.NONE
    is_detecting: bool = False
    detection_angle: float = 0.0
    detection_distance: float = 0.0
    vertical_delta: float = 0.0
    vertical_direction: VerticalDirection = VerticalDirection.LEVEL
    last_timestamp: Optional[float] = None
    samples_processed: int = 0

    def clear_derived(self) -> None:
        self.baseline = 0.0
        self.baseline_x = 0.0
        self.baseline_y = 0.0
        self.baseline_z = 0.0
        self.is_calibrated = False
        self.delta = 0.0
        self.normalized_strength = 0.0
        self.detection_level = DetectionLevel.NONE
        self.is_detecting = False
        self.detection_angle = 0.0
        self.detection_distance = 0.0
        self.vertical_delta = 0.0
        self.vertical_direction = VerticalDirection.LEVEL


class SignalProcessor:
    """Turns raw magnetometer samples into a calibrated detection signal."""

    def __init__(self, settings: Optional[ProcessorSettings] = None) -> None:
        self._settings = settings or ProcessorSettings()
        self._settings.validate()
        self._smoother = ExponentialSmoother(self._settings.filter_alpha, len(CHANNELS))
        self._calibrator = BaselineCalibrator(self._settings.calibration_count, len(CHANNELS))
        self._state = ProcessorState()

    @property
    def settings(self) -> ProcessorSettings:
        return self._settings

    @property
    def state(self) -> ProcessorState:
        return self._state

    @property
    def is_calibrated(self) -> bool:
        return self._state.is_calibrated

    @property
    def calibration_progress(self) -> float:
        return self._calibrator.progress

    @property
    def calibration_buffered(self) -> int:
        return self._calibrator.buffered

    def update_settings(self, settings: ProcessorSettings) -> None:
        """Apply new tunables. Forces a recalibration; smoothing state survives
        unless the filter coefficient changed."""
        settings.validate()
        previous = self._settings
        self._settings = settings
        if settings.filter_alpha != previous.filter_alpha:
            primed = self._smoother.primed
            state = self._smoother.state
            self._smoother = ExponentialSmoother(settings.filter_alpha, len(CHANNELS))
            if primed:
                self._smoother.prime(state)
        if settings.calibration_count != previous.calibration_count:
            self._calibrator = BaselineCalibrator(settings.calibration_count, len(CHANNELS))
        self.recalibrate()

    def process(self, sample: RawSample) -> DetectionSnapshot:
        state = self._state
        settings = self._settings
        raw = sample.channels()

        smoothed = self._smoother.apply(raw)
        state.raw_magnitude = float(raw[_MAG])
        state.smoothed_magnitude = float(smoothed[_MAG])
        state.smoothed_x = float(smoothed[_X])
        state.smoothed_y = float(smoothed[_Y])
        state.smoothed_z = float(smoothed[_Z])
        state.last_timestamp = sample.timestamp
        state.samples_processed += 1

        if not state.is_calibrated:
            if self._calibrator.add(raw):
                baseline = self._calibrator.baseline
                state.baseline = float(baseline[_MAG])
                state.baseline_x = float(baseline[_X])
                state.baseline_y = float(baseline[_Y])
                state.baseline_z = float(baseline[_Z])
                state.is_calibrated = True
                logger.info("Calibrated baseline %.2f uT after %d samples", state.baseline, self._calibrator.count)
            return self.snapshot()

        state.delta = abs(state.smoothed_magnitude - state.baseline)

        dx = state.smoothed_x - state.baseline_x
        dy = state.smoothed_y - state.baseline_y
        state.detection_angle, state.detection_distance = planar_direction(
            dx,
            dy,
            max_delta=settings.max_delta,
            distance_scale=settings.distance_scale,
            max_distance=settings.max_distance,
        )

        state.normalized_strength = normalize_strength(state.delta, settings.max_delta)

        state.detection_level = classify_level(
            state.delta,
            detection_threshold=settings.detection_threshold,
            moderate_threshold=settings.moderate_threshold,
            strong_threshold=settings.strong_threshold,
            very_strong_threshold=settings.very_strong_threshold,
        )
        state.is_detecting = state.detection_level.is_detecting

        state.vertical_delta = state.smoothed_z - state.baseline_z
        state.vertical_direction = classify_vertical(state.vertical_delta, settings.vertical_dead_zone)

        return self.snapshot()

    def process_many(self, samples: Iterable[RawSample]) -> List[DetectionSnapshot]:
        return [self.process(sample) for sample in samples]

    def recalibrate(self) -> None:
        """Restart calibration. Smoothing keeps running without a new transient."""
        self._calibrator.reset()
        self._state.clear_derived()
        logger.debug("Processor recalibration requested")

    def reset(self) -> None:
        """Forget everything, including the smoothing state."""
        self._smoother.reset()
        self._calibrator.reset()
        self._state = ProcessorState()

    def smoothed_vector(self) -> np.ndarray:
        return self._smoother.state

    def snapshot(self) -> DetectionSnapshot:
        state = self._state
        return DetectionSnapshot(
            delta=state.delta,
            normalized_strength=state.normalized_strength,
            detection_level=state.detection_level,
            detection_angle=state.detection_angle,
            detection_distance=state.detection_distance,
            vertical_delta=state.vertical_delta,
            vertical_direction=state.vertical_direction,
            is_calibrated=state.is_calibrated,
            is_detecting=state.is_detecting,
            baseline=state.baseline,
            raw_magnitude=state.raw_magnitude,
            smoothed_magnitude=state.smoothed_magnitude,
            timestamp=state.last_timestamp if state.last_timestamp is not None else 0.0,
        )


__all__ = ["CHANNELS", "ProcessorState", "SignalProcessor"]
