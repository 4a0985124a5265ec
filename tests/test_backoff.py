"""Tests for bulwark.execution.backoff module."""

import pytest

from bulwark.core.config import RetryConfig
from bulwark.execution.backoff import delay_schedule, next_delay


class TestNextDelay:
    """Tests for next_delay()."""

    def test_capped_exponential_growth(self):
        """Base 1s, multiplier 2, cap 5s gives 1, 2, 4, 5, 5."""
        config = RetryConfig(base_delay=1.0, backoff_multiplier=2.0, max_delay=5.0)
        assert [next_delay(n, config) for n in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]

    def test_multiplier_one_is_constant(self):
        config = RetryConfig(base_delay=0.5, backoff_multiplier=1.0, max_delay=10.0)
        assert {next_delay(n, config) for n in range(1, 5)} == {0.5}

    def test_zero_base_delay(self):
        config = RetryConfig(base_delay=0.0, max_delay=0.0)
        assert next_delay(3, config) == 0.0

    def test_attempt_must_be_positive(self):
        with pytest.raises(ValueError, match="attempt must be >= 1"):
            next_delay(0, RetryConfig())

    def test_deterministic_without_jitter(self):
        config = RetryConfig()
        assert next_delay(2, config) == next_delay(2, config)

    def test_jitter_uses_sampler_over_full_range(self):
        config = RetryConfig(base_delay=1.0, max_delay=5.0, jitter=True)
        calls: list[tuple[float, float]] = []

        def sampler(low: float, high: float) -> float:
            calls.append((low, high))
            return high / 2

        assert next_delay(3, config, rng=sampler) == 2.0
        assert calls == [(0.0, 4.0)]

    def test_jitter_stays_within_bounds(self):
        config = RetryConfig(base_delay=1.0, max_delay=5.0, jitter=True)
        for _ in range(50):
            assert 0.0 <= next_delay(4, config) <= 5.0


class TestDelaySchedule:
    """Tests for delay_schedule()."""

    def test_one_delay_fewer_than_attempts(self):
        config = RetryConfig(max_attempts=3, base_delay=1.0, max_delay=10.0)
        assert delay_schedule(config) == [1.0, 2.0]

    def test_explicit_attempts(self):
        config = RetryConfig(base_delay=1.0, max_delay=5.0)
        assert delay_schedule(config, attempts=6) == [1.0, 2.0, 4.0, 5.0, 5.0]

    def test_single_attempt_has_no_delays(self):
        assert delay_schedule(RetryConfig(max_attempts=1)) == []

    def test_ignores_jitter(self):
        config = RetryConfig(base_delay=1.0, max_delay=5.0, jitter=True)
        assert delay_schedule(config, attempts=4) == [1.0, 2.0, 4.0]
