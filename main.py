"""Headless FluxHound demo: a simulated magnetometer feeding a scan session.

A steel object is scripted to pass the sensor a few seconds into the run;
the derived state is written to the log as it changes. Adjust the constants
below to experiment with the processor.
"""

from __future__ import annotations

import logging
import math
import time

from core import DetectionSnapshot, ProcessorSettings, ScanSession
from daq.simulated_source import Anomaly, SimulatedMagnetometerSource

logger = logging.getLogger("fluxhound")

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

SAMPLE_RATE_HZ = 60.0
RUN_SECONDS = 8.0
ANOMALIES = (
    Anomaly(start_s=2.0, duration_s=1.5, offset_ut=(25.0, 10.0, -12.0)),
    Anomaly(start_s=4.5, duration_s=2.0, offset_ut=(-90.0, 140.0, 60.0)),
)


class LogDisplay:
    """Display sink that logs level changes instead of drawing them."""

    def __init__(self) -> None:
        self._last_level = None

    def update(self, snapshot: DetectionSnapshot, history: list[float]) -> None:
        if snapshot.detection_level is self._last_level:
            return
        self._last_level = snapshot.detection_level
        logger.info(
            "level=%-10s delta=%6.1f uT strength=%.2f angle=%+4.0f deg distance=%.2f vertical=%s",
            snapshot.detection_level.value,
            snapshot.delta,
            snapshot.normalized_strength,
            math.degrees(snapshot.detection_angle),
            snapshot.detection_distance,
            snapshot.vertical_direction.value,
        )


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    source = SimulatedMagnetometerSource(anomalies=ANOMALIES, seed=7)
    source.open()
    source.configure(sample_rate_hz=SAMPLE_RATE_HZ)

    session = ScanSession(source, ProcessorSettings(), display_sinks=[LogDisplay()])
    session.start()
    try:
        time.sleep(RUN_SECONDS)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        session.stop()

    logger.info("Duration %s, peak delta %.1f uT", session.formatted_duration(), session.peak_delta)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
