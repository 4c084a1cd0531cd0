from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from daq.base_source import BaseSensorSource
from shared.history_buffer import ReadingHistory
from shared.models import DetectionSnapshot, RawSample

from .feedback import SILENCE, DisplaySink, FeedbackCommand, FeedbackPlanner, FeedbackSink
from .processor import SignalProcessor
from .settings import FeedbackSettings, ProcessorSettings, SessionSettings

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[DetectionSnapshot], None]


class ScanStatus(Enum):
    READY = "ready"
    CALIBRATING = "calibrating"
    SCANNING = "scanning"
    NO_SIGNAL = "none"
    WEAK = "weak"
    MODERATE = "moderate"
    STRONG = "strong"
    VERY_STRONG = "veryStrong"
    STOPPED = "stopped"


_LEVEL_STATUS = {
    "none": ScanStatus.NO_SIGNAL,
    "weak": ScanStatus.WEAK,
    "moderate": ScanStatus.MODERATE,
    "strong": ScanStatus.STRONG,
    "veryStrong": ScanStatus.VERY_STRONG,
}


class ScanSession:
    """
    Owns one scan: a sensor source, a fresh processor and the sinks it feeds.

    Samples are consumed by a single thread, so the processor is never
    touched concurrently. Stopping is cooperative: the stop flag is checked
    between samples and the source is released once the loop has exited.
    """

    def __init__(
        self,
        source: BaseSensorSource,
        processor_settings: Optional[ProcessorSettings] = None,
        feedback_settings: Optional[FeedbackSettings] = None,
        session_settings: Optional[SessionSettings] = None,
        *,
        feedback_sinks: Iterable[FeedbackSink] = (),
        display_sinks: Iterable[DisplaySink] = (),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = session_settings or SessionSettings()
        self._settings.validate()
        self._source = source
        self._processor = SignalProcessor(processor_settings)
        self._planner = FeedbackPlanner(feedback_settings)
        self._feedback_sinks: List[FeedbackSink] = list(feedback_sinks)
        self._display_sinks: List[DisplaySink] = list(display_sinks)
        self._clock = clock

        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._subscribers: Dict[int, SnapshotCallback] = {}
        self._next_token = 0

        self.history = ReadingHistory(self._settings.history_size)
        self._status = ScanStatus.READY
        self._peak_delta = 0.0
        self._started_at: Optional[float] = None
        self._stopped_at: Optional[float] = None
        self._last_snapshot: Optional[DetectionSnapshot] = None
        self._last_command: FeedbackCommand = SILENCE
        self._samples_consumed = 0
        self._sinks_started = False

    # ---- Introspection ----

    @property
    def processor(self) -> SignalProcessor:
        return self._processor

    @property
    def source(self) -> BaseSensorSource:
        return self._source

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    @property
    def status(self) -> ScanStatus:
        return self._status

    @property
    def peak_delta(self) -> float:
        return self._peak_delta

    @property
    def samples_consumed(self) -> int:
        return self._samples_consumed

    @property
    def last_snapshot(self) -> Optional[DetectionSnapshot]:
        return self._last_snapshot

    @property
    def last_command(self) -> FeedbackCommand:
        return self._last_command

    @property
    def duration(self) -> float:
        if self._started_at is None:
            return 0.0
        end = self._stopped_at if self._stopped_at is not None else self._clock()
        return max(0.0, end - self._started_at)

    def formatted_duration(self) -> str:
        total = int(self.duration)
        return f"{total // 60:02d}:{total % 60:02d}"

    # ---- Subscribers ----

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = callback

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(token, None)

        return unsubscribe

    def add_feedback_sink(self, sink: FeedbackSink) -> None:
        with self._lock:
            self._feedback_sinks.append(sink)

    def add_display_sink(self, sink: DisplaySink) -> None:
        with self._lock:
            self._display_sinks.append(sink)

    # ---- Lifecycle ----

    def start(self) -> None:
        """Open the source and start consuming. SensorUnavailableError propagates
        before any sample is processed."""
        previous = self._thread
        if previous is not None and previous.is_alive() and self._stop_event.is_set():
            # A stopped consumer may still be finishing its teardown.
            previous.join(self._settings.poll_timeout * 20)

        with self._lock:
            thread = self._thread
            if thread is not None and thread.is_alive():
                if not self._stop_event.is_set():
                    return
                raise RuntimeError("previous scan consumer has not exited; cannot restart")
            self._reset_run_state()
            if self._source.state == "closed":
                self._source.open()
            try:
                if self._source.config is None:
                    self._source.configure()
                self._source.start()
            except Exception:
                self._source.close()
                raise
            self._start_sinks()
            self._stop_event.clear()
            self._status = ScanStatus.CALIBRATING
            self._started_at = self._clock()
            self._thread = threading.Thread(target=self._run, name="ScanSession-Consumer", daemon=True)
            self._thread.start()
            logger.info("Scan session started (%s)", self._source.device_class_name())

    def stop(self, *, join_timeout: float = 2.0) -> None:
        with self._lock:
            thread = self._thread
            alive = thread is not None and thread.is_alive()
            if not alive and self._status in (ScanStatus.READY, ScanStatus.STOPPED):
                return
            self._stop_event.set()

        # The consumer takes the lock per sample, so join outside it.
        # Stopping the source wakes a consumer blocked on its queue.
        self._source.stop()
        if thread is not None:
            thread.join(join_timeout)
            if thread.is_alive():
                logger.warning("Scan consumer did not exit within %.1fs", join_timeout)

        with self._lock:
            if thread is not None and not thread.is_alive() and self._thread is thread:
                self._thread = None
            if self._status is not ScanStatus.STOPPED:
                self._release()

    def join(self, timeout: Optional[float] = None) -> None:
        thread = self._thread
        if thread is not None:
            thread.join(timeout)

    def recalibrate(self) -> None:
        with self._lock:
            self._processor.recalibrate()
            self._planner.reset()
            if self._status is not ScanStatus.STOPPED and self._status is not ScanStatus.READY:
                self._status = ScanStatus.CALIBRATING

    def update_processor_settings(self, settings: ProcessorSettings) -> None:
        with self._lock:
            self._processor.update_settings(settings)
            if self.running:
                self._status = ScanStatus.CALIBRATING

    def update_feedback_settings(self, settings: FeedbackSettings) -> None:
        with self._lock:
            self._planner.update_settings(settings)

    # ---- Consumption ----

    def consume(self, samples: Iterable[RawSample], cancel: Optional[threading.Event] = None) -> int:
        """Run the processing loop synchronously over ``samples``.

        ``cancel`` is checked between samples. Feedback sinks are silenced
        when the loop ends. Returns the number of samples processed.
        """
        if self.running:
            raise RuntimeError("consume() cannot run alongside the threaded consumer")
        count = 0
        if self._status in (ScanStatus.READY, ScanStatus.STOPPED):
            self._status = ScanStatus.CALIBRATING
        try:
            for sample in samples:
                if cancel is not None and cancel.is_set():
                    break
                self._handle_sample(sample)
                count += 1
        finally:
            self._silence_sinks()
        return count

    def _run(self) -> None:
        poll = self._settings.poll_timeout
        try:
            for sample in self._source.stream(poll_timeout=poll):
                if self._stop_event.is_set():
                    break
                self._handle_sample(sample)
        except Exception:
            logger.exception("Scan consumer loop failed")
        finally:
            logger.debug("Scan consumer exiting after %d samples", self._samples_consumed)
            with self._lock:
                # Stream ended on its own: release everything stop() would.
                if not self._stop_event.is_set():
                    self._stop_event.set()
                    self._release()

    def _handle_sample(self, sample: RawSample) -> None:
        with self._lock:
            snapshot = self._processor.process(sample)
            self._samples_consumed += 1
            self._last_snapshot = snapshot
            if not snapshot.is_calibrated:
                self._status = ScanStatus.CALIBRATING
                return

            command = self._planner.plan(snapshot, self._clock())
            self._last_command = command
            self.history.push(snapshot.normalized_strength)
            if snapshot.delta > self._peak_delta:
                self._peak_delta = snapshot.delta
            self._status = _LEVEL_STATUS.get(snapshot.detection_level.value, ScanStatus.SCANNING)

            feedback_sinks = list(self._feedback_sinks)
            display_sinks = list(self._display_sinks)
            callbacks = list(self._subscribers.values())

        history = self.history.peek_all()
        for sink in feedback_sinks:
            self._notify(sink.apply, command)
        for sink in display_sinks:
            self._notify(sink.update, snapshot, history)
        for callback in callbacks:
            self._notify(callback, snapshot)

    @staticmethod
    def _notify(fn: Callable, *args) -> None:
        try:
            fn(*args)
        except Exception as exc:
            logger.warning("Scan sink %r failed: %s", fn, exc)

    # ---- Helpers ----

    def _reset_run_state(self) -> None:
        self._processor.reset()
        self._planner.reset()
        self.history.clear()
        self._peak_delta = 0.0
        self._samples_consumed = 0
        self._last_snapshot = None
        self._last_command = SILENCE
        self._started_at = None
        self._stopped_at = None

    def _release(self) -> None:
        """Stop and close the source, silence the sinks and mark the scan stopped.

        Caller holds ``self._lock``.
        """
        try:
            self._source.close()
        except Exception as exc:
            logger.warning("Closing %s failed: %s", self._source.device_class_name(), exc)
        self._stop_sinks()
        self._status = ScanStatus.STOPPED
        self._stopped_at = self._clock()
        logger.info(
            "Scan session stopped after %s (%d samples, peak delta %.1f uT)",
            self.formatted_duration(),
            self._samples_consumed,
            self._peak_delta,
        )

    def _start_sinks(self) -> None:
        for sink in list(self._feedback_sinks):
            self._notify(sink.start)
        self._sinks_started = True

    def _silence_sinks(self) -> None:
        for sink in list(self._feedback_sinks):
            self._notify(sink.apply, SILENCE)

    def _stop_sinks(self) -> None:
        if not self._sinks_started:
            return
        self._silence_sinks()
        for sink in list(self._feedback_sinks):
            self._notify(sink.stop)
        self._sinks_started = False


__all__ = ["ScanSession", "ScanStatus", "SnapshotCallback"]
