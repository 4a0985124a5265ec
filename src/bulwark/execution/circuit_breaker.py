"""Circuit breaker pattern for resilient execution.

Implements the circuit breaker pattern to stop calling a dependency that
keeps failing, giving it time to recover instead of piling on load.

The circuit breaker has three states:
- CLOSED: Normal operation, calls flow through
- OPEN: Rejecting calls without invoking them
- HALF_OPEN: Letting calls through to test whether the dependency recovered

State transitions:
- CLOSED -> OPEN: When consecutive failures reach failure_threshold
- OPEN -> HALF_OPEN: On the first call or state read after reset_timeout
  has elapsed since the last failure (lazy, no timer involved)
- HALF_OPEN -> CLOSED: On the first success
- HALF_OPEN -> OPEN: On the first failure

Compose a breaker around a retry loop, never inside it:

    breaker = CircuitBreaker(name="profiles", failure_threshold=5, reset_timeout=60.0)

    profile = await breaker.call(
        lambda: engine.run(fetch_profile, ErrorContext("profile", "load"))
    )

Callers that drive the breaker manually use can_execute()/record_success()/
record_failure() instead of call().
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from enum import Enum
from threading import Lock
from typing import Any, TypeVar

from bulwark.core.config.execution import CircuitBreakerConfig
from bulwark.core.constants import DEFAULT_FAILURE_THRESHOLD, DEFAULT_RESET_TIMEOUT_SECONDS
from bulwark.core.errors import CircuitOpenError
from bulwark.core.logging import get_logger

# Module-level logger for circuit breaker events
_logger = get_logger("circuit_breaker")

T = TypeVar("T")

Clock = Callable[[], float]


class CircuitState(str, Enum):
    """State of the circuit breaker.

    - CLOSED: Normal operation. Failures are counted but calls are allowed.
    - OPEN: Blocking mode. Calls are rejected until reset_timeout elapses.
    - HALF_OPEN: Testing mode. Calls are allowed; the first outcome decides.
    """

    CLOSED = "closed"
    """Normal operation - calls are allowed and failures are counted."""

    OPEN = "open"
    """Blocking calls - rejected without invocation until the reset timeout."""

    HALF_OPEN = "half_open"
    """Testing recovery - the next outcome closes or reopens the circuit."""


@dataclass
class CircuitBreakerStats:
    """Statistics for circuit breaker monitoring."""

    state: CircuitState = CircuitState.CLOSED
    """State at the time the stats were taken."""

    total_successes: int = 0
    """Total number of successful operations recorded."""

    total_failures: int = 0
    """Total number of failed operations recorded."""

    total_rejections: int = 0
    """Calls rejected by call() while the circuit was open."""

    times_opened: int = 0
    """Number of times the circuit has transitioned to OPEN state."""

    times_half_opened: int = 0
    """Number of times the circuit has transitioned to HALF_OPEN state."""

    times_closed: int = 0
    """Number of times the circuit has transitioned to CLOSED from another state."""

    last_failure_at: float | None = None
    """Clock reading of the most recent failure."""

    last_state_change_at: float | None = None
    """Clock reading of the most recent state transition."""

    consecutive_failures: int = 0
    """Current count of consecutive failures (resets on success and half-open)."""

    def to_dict(self) -> dict[str, Any]:
        """Convert stats to dictionary for logging/serialization."""
        return {
            "state": self.state.value,
            "total_successes": self.total_successes,
            "total_failures": self.total_failures,
            "total_rejections": self.total_rejections,
            "times_opened": self.times_opened,
            "times_half_opened": self.times_half_opened,
            "times_closed": self.times_closed,
            "consecutive_failures": self.consecutive_failures,
            "last_failure_at": self.last_failure_at,
            "last_state_change_at": self.last_state_change_at,
        }


class CircuitBreaker:
    """Circuit breaker guarding one dependency.

    Thread-safe: All state modifications are protected by a lock. The lock is
    never held while the guarded operation runs.

    Attributes:
        failure_threshold: Consecutive failures that open the circuit.
        reset_timeout: Seconds after the last failure before a test call is
            allowed (OPEN -> HALF_OPEN).
        name: Name used in logs and CircuitOpenError.
    """

    def __init__(
        self,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        reset_timeout: float = DEFAULT_RESET_TIMEOUT_SECONDS,
        name: str = "default",
        clock: Clock | None = None,
    ) -> None:
        """Initialize circuit breaker.

        Args:
            failure_threshold: Number of consecutive failures before opening
                the circuit. Default is 5.
            reset_timeout: Seconds to stay OPEN before letting a test call
                through. Default is 60.
            name: Name for this circuit breaker (used in logging).
            clock: Monotonic clock in seconds (default ``time.monotonic``).

        Raises:
            ValueError: If failure_threshold < 1 or reset_timeout <= 0.
        """
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        if reset_timeout <= 0:
            raise ValueError("reset_timeout must be positive")

        self._failure_threshold = failure_threshold
        self._reset_timeout = reset_timeout
        self._name = name
        self._clock = clock or time.monotonic

        # State (protected by lock)
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: float | None = None
        self._stats = CircuitBreakerStats()

        self._lock = Lock()

        _logger.debug(
            "circuit_breaker.initialized",
            name=name,
            failure_threshold=failure_threshold,
            reset_timeout=reset_timeout,
        )

    @classmethod
    def from_config(
        cls,
        config: CircuitBreakerConfig,
        name: str = "default",
        clock: Clock | None = None,
    ) -> CircuitBreaker:
        return cls(
            failure_threshold=config.failure_threshold,
            reset_timeout=config.reset_timeout,
            name=name,
            clock=clock,
        )

    @property
    def failure_threshold(self) -> int:
        return self._failure_threshold

    @property
    def reset_timeout(self) -> float:
        return self._reset_timeout

    @property
    def name(self) -> str:
        return self._name

    @property
    def consecutive_failures(self) -> int:
        """Consecutive failures counted toward the threshold."""
        with self._lock:
            return self._failure_count

    @property
    def last_failure_time(self) -> float | None:
        with self._lock:
            return self._last_failure_time

    @property
    def state(self) -> CircuitState:
        """Current state (same as get_state())."""
        return self.get_state()

    def get_state(self) -> CircuitState:
        """Get the current circuit state.

        If OPEN and reset_timeout has elapsed, transitions to HALF_OPEN first.
        """
        with self._lock:
            self._maybe_transition_to_half_open()
            return self._state

    def _maybe_transition_to_half_open(self) -> None:
        """Check if we should transition from OPEN to HALF_OPEN.

        Should be called while holding the lock.
        """
        if self._state != CircuitState.OPEN:
            return

        if self._last_failure_time is None:
            return

        elapsed = self._clock() - self._last_failure_time
        if elapsed >= self._reset_timeout:
            self._set_state(CircuitState.HALF_OPEN)
            self._failure_count = 0
            self._stats.consecutive_failures = 0
            _logger.info(
                "circuit_breaker.state_changed",
                name=self._name,
                from_state=CircuitState.OPEN.value,
                to_state=CircuitState.HALF_OPEN.value,
                reason="reset_timeout_elapsed",
                elapsed_seconds=round(elapsed, 2),
            )

    def _set_state(self, new_state: CircuitState) -> None:
        """Set the circuit state and update statistics.

        Should be called while holding the lock.
        """
        old_state = self._state
        if old_state == new_state:
            return

        self._state = new_state
        self._stats.last_state_change_at = self._clock()

        if new_state == CircuitState.OPEN:
            self._stats.times_opened += 1
        elif new_state == CircuitState.HALF_OPEN:
            self._stats.times_half_opened += 1
        elif new_state == CircuitState.CLOSED and old_state != CircuitState.CLOSED:
            self._stats.times_closed += 1

    def can_execute(self) -> bool:
        """Check if a call can be executed.

        Returns:
            False only while OPEN and before reset_timeout has elapsed.
        """
        with self._lock:
            self._maybe_transition_to_half_open()
            return self._state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Invoke ``operation`` through the breaker.

        Args:
            operation: Zero-argument callable returning an awaitable.

        Returns:
            The operation's result.

        Raises:
            CircuitOpenError: If the circuit is open; the operation is not
                invoked.
            Exception: Whatever the operation raised (recorded as a failure).
        """
        with self._lock:
            self._maybe_transition_to_half_open()
            if self._state == CircuitState.OPEN:
                self._stats.total_rejections += 1
                retry_after = self._remaining_timeout()
                _logger.debug(
                    "circuit_breaker.call_rejected",
                    name=self._name,
                    retry_after=retry_after,
                )
                raise CircuitOpenError(self._name, retry_after)

        try:
            result = await operation()
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result

    def record_success(self) -> None:
        """Record a successful operation.

        Effects by state:
        - CLOSED: Resets consecutive failure count
        - HALF_OPEN: Transitions to CLOSED (recovery confirmed)
        - OPEN: Only the counters change
        """
        with self._lock:
            self._stats.total_successes += 1
            self._stats.consecutive_failures = 0
            self._failure_count = 0

            if self._state == CircuitState.HALF_OPEN:
                _logger.info(
                    "circuit_breaker.state_changed",
                    name=self._name,
                    from_state=CircuitState.HALF_OPEN.value,
                    to_state=CircuitState.CLOSED.value,
                    reason="recovery_confirmed",
                )
                self._set_state(CircuitState.CLOSED)
            elif self._state == CircuitState.CLOSED:
                _logger.debug(
                    "circuit_breaker.success_recorded",
                    name=self._name,
                    state=self._state.value,
                )

    def record_failure(self) -> None:
        """Record a failed operation.

        Effects by state:
        - CLOSED: Increments failure count, may transition to OPEN
        - HALF_OPEN: Transitions to OPEN (recovery failed)
        - OPEN: Refreshes the last failure time
        """
        with self._lock:
            now = self._clock()
            self._stats.total_failures += 1
            self._stats.consecutive_failures += 1
            self._stats.last_failure_at = now
            self._failure_count += 1
            self._last_failure_time = now

            if self._state == CircuitState.HALF_OPEN:
                _logger.warning(
                    "circuit_breaker.state_changed",
                    name=self._name,
                    from_state=CircuitState.HALF_OPEN.value,
                    to_state=CircuitState.OPEN.value,
                    reason="recovery_test_failed",
                )
                self._set_state(CircuitState.OPEN)
            elif self._state == CircuitState.CLOSED:
                if self._failure_count >= self._failure_threshold:
                    _logger.warning(
                        "circuit_breaker.state_changed",
                        name=self._name,
                        from_state=CircuitState.CLOSED.value,
                        to_state=CircuitState.OPEN.value,
                        reason="failure_threshold_reached",
                        failure_count=self._failure_count,
                        failure_threshold=self._failure_threshold,
                    )
                    self._set_state(CircuitState.OPEN)
                else:
                    _logger.debug(
                        "circuit_breaker.failure_recorded",
                        name=self._name,
                        state=self._state.value,
                        failure_count=self._failure_count,
                        failure_threshold=self._failure_threshold,
                    )

    def _remaining_timeout(self) -> float | None:
        """Seconds until OPEN -> HALF_OPEN. Call while holding the lock."""
        if self._state != CircuitState.OPEN or self._last_failure_time is None:
            return None
        elapsed = self._clock() - self._last_failure_time
        return max(0.0, self._reset_timeout - elapsed)

    def time_until_retry(self) -> float | None:
        """Get time remaining until a test call is allowed.

        Returns:
            Seconds until the circuit transitions to HALF_OPEN, or None if
            the circuit is not OPEN.
        """
        with self._lock:
            return self._remaining_timeout()

    def get_stats(self) -> CircuitBreakerStats:
        """Get a copy of the current statistics."""
        with self._lock:
            self._maybe_transition_to_half_open()
            return replace(self._stats, state=self._state)

    def reset(self) -> None:
        """Reset the circuit breaker to initial state.

        Resets the state to CLOSED, the failure count to 0 and forgets the
        last failure time. Statistics are NOT reset.
        """
        with self._lock:
            old_state = self._state
            self._set_state(CircuitState.CLOSED)
            self._failure_count = 0
            self._last_failure_time = None
            self._stats.consecutive_failures = 0

            if old_state != CircuitState.CLOSED:
                _logger.info(
                    "circuit_breaker.reset",
                    name=self._name,
                    from_state=old_state.value,
                )

    def force_open(self) -> None:
        """Force the circuit to OPEN state, starting a fresh reset timeout."""
        with self._lock:
            if self._state != CircuitState.OPEN:
                old_state = self._state
                self._set_state(CircuitState.OPEN)
                self._last_failure_time = self._clock()
                _logger.info(
                    "circuit_breaker.force_opened",
                    name=self._name,
                    from_state=old_state.value,
                )

    def force_close(self) -> None:
        """Force the circuit to CLOSED state and reset failure counts."""
        with self._lock:
            old_state = self._state
            self._set_state(CircuitState.CLOSED)
            self._failure_count = 0
            self._stats.consecutive_failures = 0

            if old_state != CircuitState.CLOSED:
                _logger.info(
                    "circuit_breaker.force_closed",
                    name=self._name,
                    from_state=old_state.value,
                )

    def __repr__(self) -> str:
        return (
            f"CircuitBreaker(name={self._name!r}, state={self._state.value}, "
            f"failures={self._failure_count}/{self._failure_threshold})"
        )


class CircuitBreakerRegistry:
    """One circuit breaker per dependency name, created on first use.

    Example usage:
        breakers = CircuitBreakerRegistry(CircuitBreakerConfig(failure_threshold=3))
        await breakers.get("profiles").call(load_profile)
    """

    def __init__(
        self,
        config: CircuitBreakerConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._config = config or CircuitBreakerConfig()
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}
        self._lock = Lock()

    def get(self, name: str) -> CircuitBreaker:
        """Get the breaker for ``name``, creating it from the registry config."""
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                breaker = CircuitBreaker.from_config(self._config, name=name, clock=self._clock)
                self._breakers[name] = breaker
            return breaker

    def names(self) -> list[str]:
        with self._lock:
            return list(self._breakers)

    def get_all_stats(self) -> dict[str, CircuitBreakerStats]:
        """Stats of every breaker created so far, keyed by name."""
        with self._lock:
            breakers = list(self._breakers.values())
        return {breaker.name: breaker.get_stats() for breaker in breakers}

    def reset_all(self) -> None:
        with self._lock:
            breakers = list(self._breakers.values())
        for breaker in breakers:
            breaker.reset()


__all__ = [
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "CircuitBreakerStats",
    "CircuitState",
]
