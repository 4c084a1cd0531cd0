"""
Unit tests for the exponential smoother.

These tests check the filter quantitatively rather than by eye:
1. First sample primes the state with no start-up ramp
2. The recurrence matches y += alpha * (x - y) exactly
3. Block filtering through scipy agrees with the streaming path
4. Convergence toward a constant input is monotonic
"""
from __future__ import annotations

import numpy as np
import pytest

from core.conditioning import ExponentialSmoother


class TestStreaming:
    def test_first_sample_primes_state(self):
        smoother = ExponentialSmoother(0.15, 2)
        out = smoother.apply(np.array([40.0, -3.0]))
        np.testing.assert_array_equal(out, [40.0, -3.0])
        assert smoother.primed

    def test_recurrence(self):
        smoother = ExponentialSmoother(0.15, 1)
        smoother.apply(np.array([100.0]))
        out = smoother.apply(np.array([200.0]))
        assert out[0] == pytest.approx(100.0 + 0.15 * (200.0 - 100.0))

    def test_state_is_read_only_copy(self):
        smoother = ExponentialSmoother(0.5, 1)
        out = smoother.apply(np.array([1.0]))
        with pytest.raises(ValueError):
            out[0] = 5.0

    def test_monotonic_convergence_to_constant(self):
        smoother = ExponentialSmoother(0.15, 1)
        smoother.apply(np.array([50.0]))
        previous_error = 200.0
        for _ in range(40):
            value = smoother.apply(np.array([250.0]))[0]
            error = 250.0 - value
            assert 0.0 <= error < previous_error
            previous_error = error
        # (1 - 0.15) ** 40 ~= 0.0015 of the 200 uT step
        assert previous_error < 200.0 * 0.002

    def test_channel_mismatch_rejected(self):
        smoother = ExponentialSmoother(0.15, 4)
        with pytest.raises(ValueError):
            smoother.apply(np.array([1.0, 2.0]))

    @pytest.mark.parametrize("alpha", [0.0, -0.1, 1.5])
    def test_invalid_alpha(self, alpha):
        with pytest.raises(ValueError):
            ExponentialSmoother(alpha, 1)

    def test_reset_forgets_priming(self):
        smoother = ExponentialSmoother(0.15, 1)
        smoother.apply(np.array([10.0]))
        smoother.apply(np.array([20.0]))
        smoother.reset()
        assert not smoother.primed
        np.testing.assert_array_equal(smoother.apply(np.array([99.0])), [99.0])


class TestBlockFiltering:
    def test_block_matches_streaming_from_cold_start(self):
        rng = np.random.default_rng(3)
        block = rng.normal(45.0, 4.0, size=(3, 200))

        streaming = ExponentialSmoother(0.15, 3)
        expected = np.stack([streaming.apply(block[:, i]) for i in range(block.shape[1])], axis=1)

        batch = ExponentialSmoother(0.15, 3)
        out = batch.apply_block(block)

        np.testing.assert_allclose(out, expected, rtol=1e-12, atol=1e-9)
        np.testing.assert_allclose(batch.state, streaming.state, rtol=1e-12)

    def test_block_continues_streaming_state(self):
        rng = np.random.default_rng(11)
        head = rng.normal(0.0, 1.0, size=(2, 10))
        tail = rng.normal(5.0, 1.0, size=(2, 50))

        reference = ExponentialSmoother(0.3, 2)
        for i in range(head.shape[1]):
            reference.apply(head[:, i])
        expected = np.stack([reference.apply(tail[:, i]) for i in range(tail.shape[1])], axis=1)

        mixed = ExponentialSmoother(0.3, 2)
        for i in range(head.shape[1]):
            mixed.apply(head[:, i])
        out = mixed.apply_block(tail)

        np.testing.assert_allclose(out, expected, rtol=1e-12, atol=1e-9)

    def test_first_block_sample_is_unfiltered(self):
        smoother = ExponentialSmoother(0.15, 1)
        out = smoother.apply_block(np.array([[42.0, 42.0, 100.0]]))
        assert out[0, 0] == pytest.approx(42.0)
        assert out[0, 1] == pytest.approx(42.0)
        assert out[0, 2] == pytest.approx(42.0 + 0.15 * 58.0)

    def test_empty_block_leaves_state_untouched(self):
        smoother = ExponentialSmoother(0.15, 2)
        out = smoother.apply_block(np.zeros((2, 0)))
        assert out.shape == (2, 0)
        assert not smoother.primed

    def test_block_must_be_2d(self):
        smoother = ExponentialSmoother(0.15, 1)
        with pytest.raises(ValueError):
            smoother.apply_block(np.zeros(5))
