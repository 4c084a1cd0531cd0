from __future__ import annotations

from typing import Optional

import numpy as np
from scipy import signal


class ExponentialSmoother:
    """Single-pole low-pass filter applied independently to each channel.

    ``y[n] = y[n-1] + alpha * (x[n] - y[n-1])``. The first sample primes the
    state to the raw value so there is no start-up ramp. ``reset()`` is the
    only way to forget the primed state.
    """

    def __init__(self, alpha: float, n_channels: int) -> None:
        if not (0.0 < alpha <= 1.0):
            raise ValueError("alpha must be in (0, 1]")
        if n_channels <= 0:
            raise ValueError("n_channels must be positive")
        self._alpha = float(alpha)
        self._n_channels = int(n_channels)
        self._state = np.zeros(self._n_channels, dtype=np.float64)
        self._primed = False
        # Transfer function of the recurrence for block filtering.
        self._b = np.array([self._alpha], dtype=np.float64)
        self._a = np.array([1.0, -(1.0 - self._alpha)], dtype=np.float64)
        self._zi_template = signal.lfilter_zi(self._b, self._a)

    @property
    def alpha(self) -> float:
        return self._alpha

    @property
    def n_channels(self) -> int:
        return self._n_channels

    @property
    def primed(self) -> bool:
        return self._primed

    @property
    def state(self) -> np.ndarray:
        out = self._state.copy()
        out.setflags(write=False)
        return out

    def prime(self, initial_values: np.ndarray) -> None:
        """Set the smoothed state directly, e.g. from the first sample."""
        values = np.asarray(initial_values, dtype=np.float64).reshape(-1)
        if values.shape[0] != self._n_channels:
            raise ValueError("initial_values length must match channel count")
        self._state[:] = values
        self._primed = True

    def apply(self, values: np.ndarray) -> np.ndarray:
        """Filter one multi-channel sample and return the new smoothed state."""
        raw = np.asarray(values, dtype=np.float64).reshape(-1)
        if raw.shape[0] != self._n_channels:
            raise ValueError("channel count changed without reset")
        if not self._primed:
            self.prime(raw)
        else:
            self._state += self._alpha * (raw - self._state)
        return self.state

    def apply_block(self, samples: np.ndarray) -> np.ndarray:
        """Filter a ``(channels, frames)`` block, continuing the streaming state."""
        block = np.asarray(samples, dtype=np.float64)
        if block.ndim != 2:
            raise ValueError("samples must be 2D (channels, frames)")
        if block.shape[0] != self._n_channels:
            raise ValueError("channel count changed without reset")
        if block.shape[1] == 0:
            return np.empty_like(block)

        if self._primed:
            # Direct form II transposed: the single delay holds (1 - alpha) * y[n-1].
            zi = (1.0 - self._alpha) * self._state
        else:
            zi = self._zi_template[0] * block[:, 0]

        out = np.empty_like(block)
        for idx in range(self._n_channels):
            filtered, _ = signal.lfilter(self._b, self._a, block[idx], zi=[zi[idx]])
            out[idx] = filtered
        self._state[:] = out[:, -1]
        self._primed = True
        return out

    def reset(self, n_channels: Optional[int] = None) -> None:
        if n_channels is not None:
            if n_channels <= 0:
                raise ValueError("n_channels must be positive")
            self._n_channels = int(n_channels)
        self._state = np.zeros(self._n_channels, dtype=np.float64)
        self._primed = False


__all__ = ["ExponentialSmoother"]
