# daq/simulated_source.py
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from shared.models import DeviceInfo, SourceConfig

from .base_source import BaseSensorSource, SensorUnavailableError

logger = logging.getLogger(__name__)

# Typical mid-latitude Earth field seen by a phone lying flat, in uT (|B| ~ 48 uT).
DEFAULT_AMBIENT_UT = (18.0, -6.0, -44.0)


@dataclass(frozen=True)
class Anomaly:
    """A scripted disturbance added to the ambient field for a time window."""

    start_s: float
    duration_s: float
    offset_ut: Tuple[float, float, float]

    def __post_init__(self) -> None:
        if self.start_s < 0:
            raise ValueError("start_s must be non-negative")
        if self.duration_s <= 0:
            raise ValueError("duration_s must be positive")
        if len(self.offset_ut) != 3:
            raise ValueError("offset_ut must have 3 components")

    def active_at(self, t: float) -> bool:
        return self.start_s <= t < self.start_s + self.duration_s


class SimulatedMagnetometerSource(BaseSensorSource):
    """
    Simulates a phone magnetometer: a constant ambient field, Gaussian sensor
    noise and optional scripted anomalies (e.g. a steel object passing by).

    Samples are produced by a worker thread paced at the configured rate.
    ``sample_at(t)`` is deterministic for a given seed and call order.
    """

    @classmethod
    def device_class_name(cls) -> str:
        return "Simulated"

    def __init__(
        self,
        queue_maxsize: int = 1,
        *,
        ambient_ut: Sequence[float] = DEFAULT_AMBIENT_UT,
        noise_ut: float = 0.5,
        anomalies: Optional[Sequence[Anomaly]] = None,
        seed: Optional[int] = None,
        available: bool = True,
    ) -> None:
        super().__init__(queue_maxsize=queue_maxsize)
        ambient = np.asarray(ambient_ut, dtype=np.float64).reshape(-1)
        if ambient.shape[0] != 3:
            raise ValueError("ambient_ut must have 3 components")
        if noise_ut < 0:
            raise ValueError("noise_ut must be non-negative")
        self._ambient = ambient
        self._noise_ut = float(noise_ut)
        self._anomalies: List[Anomaly] = list(anomalies or [])
        self._seed = seed
        self._rng = np.random.default_rng(seed)
        self._available = available
        self._worker: Optional[threading.Thread] = None
        self._anomaly_lock = threading.Lock()

    # ---- Discovery ------------------------------------------------------------
    @classmethod
    def list_available_devices(cls) -> List[DeviceInfo]:
        return [DeviceInfo(id="sim0", name="Simulated Magnetometer (virtual)")]

    # ---- Scenario control -----------------------------------------------------
    def add_anomaly(self, anomaly: Anomaly) -> None:
        with self._anomaly_lock:
            self._anomalies.append(anomaly)

    def clear_anomalies(self) -> None:
        with self._anomaly_lock:
            self._anomalies.clear()

    def field_at(self, t: float) -> np.ndarray:
        """Noise-free field vector at ``t`` seconds after start."""
        field = self._ambient.copy()
        with self._anomaly_lock:
            for anomaly in self._anomalies:
                if anomaly.active_at(t):
                    field += np.asarray(anomaly.offset_ut, dtype=np.float64)
        return field

    def sample_at(self, t: float) -> np.ndarray:
        field = self.field_at(t)
        if self._noise_ut > 0:
            field = field + self._rng.normal(0.0, self._noise_ut, size=3)
        return field

    # ------------- BaseSensorSource overrides -------------

    def _open_impl(self, device_id: str) -> None:
        if not self._available:
            raise SensorUnavailableError(f"Simulated device {device_id} is disabled")
        if device_id not in {dev.id for dev in self.list_available_devices()}:
            raise SensorUnavailableError(f"Unknown simulated device {device_id!r}")

    def _close_impl(self) -> None:
        # Nothing to close; worker should already be stopped
        pass

    def _configure_impl(self, sample_rate_hz: float, **options) -> SourceConfig:
        if "noise_ut" in options:
            noise = float(options["noise_ut"])
            if noise < 0:
                raise ValueError("noise_ut must be non-negative")
            self._noise_ut = noise
        return SourceConfig(sample_rate_hz=sample_rate_hz)

    def _start_impl(self) -> None:
        assert self.config is not None
        if self._worker and self._worker.is_alive():
            return
        self._rng = np.random.default_rng(self._seed)

        def _loop() -> None:
            period = 1.0 / self.config.sample_rate_hz
            t0 = time.perf_counter()
            next_deadline = t0 + period
            index = 0

            while not self.stop_event.is_set():
                t = index * period
                x, y, z = self.sample_at(t)
                self.emit_sample(x, y, z, timestamp=time.monotonic())
                index += 1

                next_deadline += period
                time.sleep(max(0.0, next_deadline - time.perf_counter()))

        self._worker = threading.Thread(target=_loop, name="SimMag-Worker", daemon=True)
        self._worker.start()
        logger.debug("Simulated magnetometer streaming at %.1f Hz", self.config.sample_rate_hz)

    def _stop_impl(self) -> None:
        if self._worker and self._worker.is_alive():
            self._worker.join(timeout=1.0)
        self._worker = None
