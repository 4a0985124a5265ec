"""Exponential backoff policy.

The delay before attempt ``n + 1`` is::

    min(base_delay * backoff_multiplier ** (n - 1), max_delay)

with ``n`` the 1-based number of the attempt that just failed. With
``base_delay=1``, ``backoff_multiplier=2`` and ``max_delay=5`` the delays are
1, 2, 4, 5, 5, ...

No randomization is applied unless ``RetryConfig.jitter`` is set. Jitter
spreads out many clients retrying in lockstep, at the cost of
reproducible delays.
"""

from __future__ import annotations

import random
from collections.abc import Callable

from bulwark.core.config.execution import RetryConfig


def next_delay(
    attempt: int,
    config: RetryConfig,
    rng: Callable[[float, float], float] | None = None,
) -> float:
    """Compute the delay to wait after a failed attempt.

    Args:
        attempt: 1-based number of the attempt that failed.
        config: Retry configuration supplying base, multiplier and cap.
        rng: Uniform sampler used when ``config.jitter`` is set
            (defaults to ``random.uniform``).

    Returns:
        Delay in seconds.

    Raises:
        ValueError: If attempt is less than 1.
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")

    delay = min(
        config.base_delay * config.backoff_multiplier ** (attempt - 1),
        config.max_delay,
    )
    if config.jitter:
        sample = rng or random.uniform
        delay = sample(0.0, delay)
    return delay


def delay_schedule(config: RetryConfig, attempts: int | None = None) -> list[float]:
    """Delays waited between consecutive attempts.

    Args:
        config: Retry configuration.
        attempts: Number of attempts to plan for; defaults to
            ``config.max_attempts``. ``n`` attempts have ``n - 1`` delays.

    Returns:
        List of deterministic delays (jitter is ignored).
    """
    total = config.max_attempts if attempts is None else attempts
    plain = config.model_copy(update={"jitter": False})
    return [next_delay(n, plain) for n in range(1, total)]
