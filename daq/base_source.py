from __future__ import annotations

"""
Base classes for streaming magnetometer sources.

Goals:
- Simple, stable contract for consumers (samples over a single-slot queue).
- Clean lifecycle: open → configure → start/stop → close.
- Input validation at the boundary so the processor only sees finite,
  physically plausible samples.
- Cooperative cancellation: producer loops watch ``stop_event`` and the
  ``stream()`` iterator ends as soon as the source is stopped.

Subclasses implement the *_impl() methods to integrate real hardware
(or simulators) while relying on the shared utilities here.
"""

import logging
import math
import queue
import threading
import time as _time
from abc import ABC, abstractmethod
from typing import Any, Iterable, Iterator, List, Literal, Optional, Union

from shared.models import DeviceInfo, EndOfStream, RawSample, SourceConfig

logger = logging.getLogger(__name__)

State = Literal["closed", "open", "running"]

# Well above any Earth field plus a strong nearby magnet; larger readings are glitches.
DEFAULT_MAX_FIELD_UT = 5000.0


class SensorUnavailableError(RuntimeError):
    """The requested sensor cannot be provided (missing hardware, permission denied)."""


class BaseSensorSource(ABC):
    """
    Abstract base for all magnetometer sources.

    Typical flow:
        devs = Driver.list_available_devices()
        source = Driver()
        source.open(devs[0].id)
        source.configure(sample_rate_hz=60.0)
        source.start()
        for sample in source.stream():
            ...
        source.stop()
        source.close()
    """

    @classmethod
    @abstractmethod
    def device_class_name(cls) -> str:
        """Return the human-friendly category name for this driver type."""
        raise NotImplementedError

    # ---- Lifecycle ---------------------------------------------------------

    def __init__(self, queue_maxsize: int = 1, *, max_field_ut: float = DEFAULT_MAX_FIELD_UT) -> None:
        if queue_maxsize <= 0:
            raise ValueError("queue_maxsize must be positive")
        if max_field_ut <= 0:
            raise ValueError("max_field_ut must be positive")
        self.data_queue: "queue.Queue[Union[RawSample, object]]" = queue.Queue(maxsize=queue_maxsize)
        self._stop_event = threading.Event()
        self._state_lock = threading.RLock()
        self._max_field_ut = float(max_field_ut)

        self._state: State = "closed"
        self._device_id: Optional[str] = None
        self.config: Optional[SourceConfig] = None

        # Run-level counters (reset at each start)
        self._emitted: int = 0
        self._drops: int = 0
        self._rejected: int = 0

    # ------------------------
    # Device enumeration APIs
    # ------------------------

    @classmethod
    @abstractmethod
    def list_available_devices(cls) -> List[DeviceInfo]:
        """Return all magnetometers visible to the driver."""
        raise NotImplementedError

    # ----------
    # Lifecycle
    # ----------

    def open(self, device_id: Optional[str] = None) -> None:
        with self._state_lock:
            self._assert_state(expected=("closed",))
            if device_id is None:
                devices = self.list_available_devices()
                if not devices:
                    raise SensorUnavailableError(f"{self.device_class_name()}: no sensor available")
                device_id = devices[0].id
            self._open_impl(device_id)
            self._device_id = device_id
            self._state = "open"
            logger.info("Opened %s device %s", self.device_class_name(), device_id)

    @abstractmethod
    def _open_impl(self, device_id: str) -> None:
        """Driver-specific resource acquisition. Raise SensorUnavailableError on failure."""
        raise NotImplementedError

    def close(self) -> None:
        with self._state_lock:
            if self._state == "closed":
                return
            if self._state == "running":
                # Be resilient: stop if still running.
                self._stop_impl_safe()
            self._close_impl()
            self._device_id = None
            self.config = None
            self._state = "closed"
            logger.info("Closed %s", self.device_class_name())

    @abstractmethod
    def _close_impl(self) -> None:
        """Driver-specific resource release."""
        raise NotImplementedError

    # -------------
    # Configuration
    # -------------

    def configure(self, sample_rate_hz: float = 60.0, **options: Any) -> SourceConfig:
        """
        Apply the sampling configuration. May be called multiple times while open.
        Returns the configuration achieved by the driver.
        """
        with self._state_lock:
            self._assert_state(expected=("open",))
            if sample_rate_hz <= 0:
                raise ValueError("sample_rate_hz must be positive")
            actual = self._configure_impl(sample_rate_hz=float(sample_rate_hz), **options)
            self.config = actual
            return actual

    def _configure_impl(self, sample_rate_hz: float, **options: Any) -> SourceConfig:
        """Driver-specific configuration. Should not start streaming."""
        return SourceConfig(sample_rate_hz=sample_rate_hz)

    # ---- Run control ----

    def start(self) -> None:
        """Begin streaming. Resets run counters and drains stale samples."""
        with self._state_lock:
            self._assert_state(expected=("open",))
            if self.config is None:
                self.config = self._configure_impl(sample_rate_hz=60.0)
            self._reset_counters()
            self._stop_event.clear()
            self._start_impl()
            self._state = "running"

    @abstractmethod
    def _start_impl(self) -> None:
        """Driver-specific start. Emit data by calling self.emit_sample(...)."""
        raise NotImplementedError

    def stop(self) -> None:
        """Stop streaming; device remains open and can be restarted."""
        with self._state_lock:
            if self._state == "running":
                self._stop_impl_safe()
                self._state = "open"

    def _stop_impl_safe(self) -> None:
        # Signal cooperative loops, wake any blocked consumer, then call driver stop.
        self._stop_event.set()
        try:
            self._stop_impl()
        finally:
            self._wake_consumer()

    @abstractmethod
    def _stop_impl(self) -> None:
        """Driver-specific stop."""
        raise NotImplementedError

    # --------------
    # Emit utilities
    # --------------

    def emit_sample(
        self,
        x: float,
        y: float,
        z: float,
        *,
        timestamp: Optional[float] = None,
        block: bool = False,
    ) -> Optional[RawSample]:
        """
        Validate, build and enqueue a RawSample.

        Non-finite components and components beyond ``max_field_ut`` are
        rejected and counted; the method then returns None. With ``block``
        the call waits for the consumer instead of evicting the oldest
        sample, giving up only when the source is stopped.
        """
        values = (float(x), float(y), float(z))
        if not all(math.isfinite(v) for v in values):
            self._rejected += 1
            logger.debug("Rejected non-finite sample %s", values)
            return None
        if any(abs(v) > self._max_field_ut for v in values):
            self._rejected += 1
            logger.debug("Rejected out-of-range sample %s (limit %.1f uT)", values, self._max_field_ut)
            return None

        stamp = _time.monotonic() if timestamp is None else float(timestamp)
        sample = RawSample(values[0], values[1], values[2], stamp)
        if block:
            if not self._blocking_put(sample):
                return None
        else:
            self._safe_put(sample)
        self._emitted += 1
        return sample

    def emit_end_of_stream(self) -> None:
        """Tell consumers that no further samples will arrive."""
        if not self._blocking_put(EndOfStream):
            self._safe_put(EndOfStream)

    # ---------------------
    # Consumer-side helpers
    # ---------------------

    def stream(self, poll_timeout: float = 0.05) -> Iterator[RawSample]:
        """
        Yield samples in capture order until the source is stopped or the
        producer signals end of stream. Cancellation is checked between
        samples, never mid-sample.
        """
        while True:
            try:
                item = self.data_queue.get(timeout=poll_timeout)
            except queue.Empty:
                if self._stop_event.is_set():
                    return
                continue
            if item is EndOfStream:
                return
            if self._stop_event.is_set():
                return
            yield item

    # --------------
    # Introspection
    # --------------

    @property
    def state(self) -> State:
        with self._state_lock:
            return self._state

    @property
    def running(self) -> bool:
        return self.state == "running"

    @property
    def device_id(self) -> Optional[str]:
        return self._device_id

    @property
    def stop_event(self) -> threading.Event:
        """Subclasses check this in their producer loops for cooperative stop."""
        return self._stop_event

    def stats(self) -> dict[str, Any]:
        """Lightweight diagnostics a status view can poll occasionally."""
        return {
            "state": self.state,
            "queue_size": self.data_queue.qsize(),
            "queue_maxsize": self.data_queue.maxsize,
            "emitted": self._emitted,
            "drops": self._drops,
            "rejected": self._rejected,
            "sample_rate_hz": None if self.config is None else self.config.sample_rate_hz,
        }

    # -------------
    # Base helpers
    # -------------

    def _reset_counters(self) -> None:
        with self._state_lock:
            self._emitted = 0
            self._drops = 0
            self._rejected = 0
            self._drain_queue()

    def _drain_queue(self) -> None:
        try:
            while True:
                self.data_queue.get_nowait()
        except queue.Empty:
            pass

    def _safe_put(self, item: object) -> None:
        """
        Central backpressure policy: drop-oldest, then try once more.
        The processor only ever needs the latest in-flight sample.
        """
        try:
            self.data_queue.put_nowait(item)
        except queue.Full:
            try:
                _ = self.data_queue.get_nowait()
                self._drops += 1
            except queue.Empty:
                # Race: became empty; ignore
                pass
            try:
                self.data_queue.put_nowait(item)
            except queue.Full:
                logger.debug("Queue still full after eviction; sample dropped")

    def _blocking_put(self, item: object, poll: float = 0.05) -> bool:
        while not self._stop_event.is_set():
            try:
                self.data_queue.put(item, timeout=poll)
                return True
            except queue.Full:
                continue
        return False

    def _wake_consumer(self) -> None:
        # Replace whatever is pending with EndOfStream so stream() exits promptly.
        self._drain_queue()
        try:
            self.data_queue.put_nowait(EndOfStream)
        except queue.Full:
            pass

    def _assert_state(self, expected: Iterable[State]) -> None:
        expected = tuple(expected)
        if self._state not in expected:
            raise RuntimeError(f"Invalid state: {self._state}; expected one of {expected}.")


__all__ = [
    "BaseSensorSource",
    "DEFAULT_MAX_FIELD_UT",
    "SensorUnavailableError",
    "State",
]
