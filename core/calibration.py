from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np

logger = logging.getLogger(__name__)


class BaselineCalibrator:
    """Accumulates raw samples until ``count`` are buffered, then fixes the baseline.

    The baseline of each channel is the arithmetic mean of its buffered raw
    values. Once complete, further samples are ignored until ``reset()``.
    """

    def __init__(self, count: int, n_channels: int) -> None:
        if count <= 0:
            raise ValueError("count must be positive")
        if n_channels <= 0:
            raise ValueError("n_channels must be positive")
        self._count = int(count)
        self._n_channels = int(n_channels)
        self._buffer: List[np.ndarray] = []
        self._baseline: Optional[np.ndarray] = None

    @property
    def count(self) -> int:
        return self._count

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    @property
    def complete(self) -> bool:
        return self._baseline is not None

    @property
    def progress(self) -> float:
        if self.complete:
            return 1.0
        return len(self._buffer) / self._count

    @property
    def baseline(self) -> np.ndarray:
        """Per-channel baseline; zeros while calibration is in progress."""
        if self._baseline is None:
            return np.zeros(self._n_channels, dtype=np.float64)
        out = self._baseline.copy()
        out.setflags(write=False)
        return out

    def add(self, values: np.ndarray) -> bool:
        """Buffer one raw sample. Returns True only on the sample that completes calibration."""
        if self._baseline is not None:
            return False
        raw = np.array(values, dtype=np.float64).reshape(-1)
        if raw.shape[0] != self._n_channels:
            raise ValueError(f"expected {self._n_channels} channels, got {raw.shape[0]}")
        self._buffer.append(raw)
        if len(self._buffer) < self._count:
            return False

        self._baseline = np.mean(np.stack(self._buffer), axis=0)
        logger.debug("Calibration complete after %d samples: baseline=%s", self._count, self._baseline)
        return True

    def reset(self) -> None:
        self._buffer.clear()
        self._baseline = None


__all__ = ["BaselineCalibrator"]
