# daq/replay_source.py
"""Replay of recorded magnetometer traces as streaming data."""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import List, Optional, Union

import numpy as np

from shared.models import DeviceInfo, SourceConfig

from .base_source import BaseSensorSource, SensorUnavailableError

logger = logging.getLogger(__name__)


class ReplaySource(BaseSensorSource):
    """
    Streams a recorded trace through the normal source contract.

    The recording is an ``(n, 3)`` array of x, y, z in microtesla, or
    ``(n, 4)`` with a trailing capture timestamp in seconds. CSV files with
    the same column layout (optionally with a header row) load through
    :meth:`from_csv`.

    Features:
    - Real-time pacing at the configured rate, or as fast as the consumer
      drains (``realtime=False``).
    - Every recorded sample is delivered: emission blocks on a full queue
      instead of evicting.
    - Emits ``EndOfStream`` after the last sample.
    """

    @classmethod
    def device_class_name(cls) -> str:
        return "Replay"

    def __init__(
        self,
        samples: np.ndarray,
        *,
        realtime: bool = False,
        queue_maxsize: int = 1,
    ) -> None:
        super().__init__(queue_maxsize=queue_maxsize)
        data = np.asarray(samples, dtype=np.float64)
        if data.ndim != 2 or data.shape[1] not in (3, 4):
            raise ValueError("samples must be shaped (n, 3) or (n, 4)")
        self._data = data
        self._realtime = realtime
        self._position = 0
        self._lock = threading.Lock()
        self._finished = threading.Event()
        self._worker: Optional[threading.Thread] = None

    @classmethod
    def from_csv(cls, path: Union[str, Path], **kwargs) -> "ReplaySource":
        path = Path(path)
        if not path.exists():
            raise SensorUnavailableError(f"Recording not found: {path}")
        with path.open("r", encoding="utf-8") as fh:
            first = fh.readline()
        skip = 0 if _is_numeric_row(first) else 1
        data = np.loadtxt(path, delimiter=",", skiprows=skip, ndmin=2)
        logger.info("Loaded recording %s (%d samples)", path.name, data.shape[0])
        return cls(data, **kwargs)

    # ---- Discovery APIs ----

    @classmethod
    def list_available_devices(cls) -> List[DeviceInfo]:
        return [
            DeviceInfo(
                id="replay",
                name="Recorded Trace",
                details={"type": "virtual", "description": "Replay a recorded magnetometer trace"},
            )
        ]

    # ---- Introspection ----

    @property
    def total_samples(self) -> int:
        return int(self._data.shape[0])

    @property
    def position(self) -> int:
        with self._lock:
            return self._position

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    # ---- Lifecycle ----

    def _open_impl(self, device_id: str) -> None:
        if self._data.shape[0] == 0:
            raise SensorUnavailableError("Recording contains no samples")

    def _close_impl(self) -> None:
        with self._lock:
            self._position = 0

    def _configure_impl(self, sample_rate_hz: float, **options) -> SourceConfig:
        if "realtime" in options:
            self._realtime = bool(options["realtime"])
        return SourceConfig(sample_rate_hz=sample_rate_hz)

    def _start_impl(self) -> None:
        if self._worker is not None and self._worker.is_alive():
            return
        with self._lock:
            self._position = 0
        self._finished.clear()
        self._worker = threading.Thread(target=self._run_loop, name="Replay-Worker", daemon=True)
        self._worker.start()

    def _stop_impl(self) -> None:
        if self._worker is not None and self._worker.is_alive():
            self._worker.join(timeout=2.0)
        self._worker = None

    # ---- Worker Thread ----

    def _run_loop(self) -> None:
        assert self.config is not None
        period = 1.0 / self.config.sample_rate_hz
        has_timestamps = self._data.shape[1] == 4
        next_deadline = time.perf_counter() + period
        t0 = time.monotonic()

        for index, row in enumerate(self._data):
            if self.stop_event.is_set():
                return
            timestamp = float(row[3]) if has_timestamps else t0 + index * period
            self.emit_sample(row[0], row[1], row[2], timestamp=timestamp, block=True)
            with self._lock:
                self._position = index + 1

            if self._realtime:
                next_deadline += period
                sleep_time = next_deadline - time.perf_counter()
                if sleep_time > 0:
                    time.sleep(sleep_time)
                elif sleep_time < -0.5:
                    # We're falling behind; reset deadline
                    next_deadline = time.perf_counter() + period

        logger.info("End of recording reached after %d samples", self.total_samples)
        self._finished.set()
        self.emit_end_of_stream()


def _is_numeric_row(line: str) -> bool:
    fields = [part.strip() for part in line.split(",") if part.strip()]
    if not fields:
        return False
    try:
        for part in fields:
            float(part)
    except ValueError:
        return False
    return True


__all__ = ["ReplaySource"]
