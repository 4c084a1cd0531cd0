from __future__ import annotations

from collections import deque
from threading import Lock
from typing import Deque, Iterable, List

import numpy as np


class ReadingHistory:
    """
    Thread-safe, bounded history of recent normalized strengths.

    The scan session pushes one value per calibrated sample while display
    code takes snapshots for the waveform view.
    """

    def __init__(self, capacity: int = 80) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = int(capacity)
        self._buffer: Deque[float] = deque(maxlen=self._capacity)
        self._lock = Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def push(self, value: float) -> None:
        """
        Append a value, dropping the oldest entry if the history is full.
        """
        with self._lock:
            self._buffer.append(float(value))

    def extend(self, values: Iterable[float]) -> None:
        for value in values:
            self.push(value)

    def peek_all(self) -> List[float]:
        """
        Return the values in chronological order without clearing them.
        """
        with self._lock:
            return list(self._buffer)

    def as_array(self) -> np.ndarray:
        with self._lock:
            return np.fromiter(self._buffer, dtype=np.float64, count=len(self._buffer))

    def drain(self) -> List[float]:
        with self._lock:
            values = list(self._buffer)
            self._buffer.clear()
            return values

    def clear(self) -> None:
        with self._lock:
            self._buffer.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)


__all__ = ["ReadingHistory"]
