"""Retry engine for async operations.

Runs an operation up to ``RetryConfig.max_attempts`` times, classifying every
failure and backing off between attempts. The engine never wraps failures:
whatever the operation raised on its terminal attempt is what the caller
sees. Classification is side-channel metadata that goes to the error
registry, observers and notifiers.

Composition with circuit breakers: put the breaker around ``run()``, not
inside the operation. A breaker inside the loop turns every open-circuit
rejection into one more retried failure.

Example usage:
    engine = RetryEngine(
        error_registry=ErrorRegistry(),
        notifications=NotificationManager([LogNotifier()]),
    )

    profile = await engine.run(
        lambda: client.fetch_profile(user_id),
        ErrorContext(component="profile", action="load"),
    )
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar, overload

from bulwark.core.config.execution import RetryConfig
from bulwark.core.errors import ClassifiedError, ErrorClassifier, ErrorContext
from bulwark.core.logging import get_logger, with_error_context
from bulwark.execution.backoff import next_delay
from bulwark.notifications.base import NotificationManager
from bulwark.state.registry import ErrorRegistry

_logger = get_logger("retry")

T = TypeVar("T")
D = TypeVar("D")

Operation = Callable[[], Awaitable[T]]
SleepFn = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryAttempt:
    """One failed attempt, as seen by observers.

    Attributes:
        attempt: 1-based attempt number.
        max_attempts: Attempt budget of the run.
        error: Classification of the failure.
        delay: Seconds the engine waits before the next attempt, or None
            when this failure is terminal.
    """

    attempt: int
    max_attempts: int
    error: ClassifiedError
    delay: float | None

    @property
    def terminal(self) -> bool:
        return self.delay is None


class RetryObserver(Protocol):
    """Callable notified about every failed attempt."""

    def __call__(self, attempt: RetryAttempt) -> None: ...


class RetryEngine:
    """Retries async operations with exponential backoff.

    Each failed attempt:
    1. is classified into a ClassifiedError
    2. increments the error registry count for the context
    3. is reported to observers
    4. either ends the run (re-raising the original exception) or waits
       ``next_delay(attempt)`` seconds before the next attempt

    A run ends when the failure is not retryable, its type is not in
    ``RetryConfig.retryable_types``, or the attempt budget is used up.
    Exactly one notification is sent per failed run unless the config
    opts into ``notify_each_attempt``.
    """

    def __init__(
        self,
        error_registry: ErrorRegistry | None = None,
        notifications: NotificationManager | None = None,
        classifier: ErrorClassifier | None = None,
        config: RetryConfig | None = None,
        sleep: SleepFn | None = None,
        rng: Callable[[float, float], float] | None = None,
        observers: Sequence[RetryObserver] = (),
    ) -> None:
        """Initialize the retry engine.

        Args:
            error_registry: Registry receiving failure counts; a private one
                is created when omitted.
            notifications: Manager for user-facing notifications; when
                omitted no notifications are sent.
            classifier: Classifier for failures (default: always online).
            config: Default RetryConfig for runs that don't pass one.
            sleep: Coroutine function used to wait between attempts.
            rng: Uniform sampler used when jitter is enabled.
            observers: Observers called for every failed attempt.
        """
        self.error_registry = error_registry or ErrorRegistry()
        self.notifications = notifications
        self.classifier = classifier or ErrorClassifier()
        self.config = config or RetryConfig()
        self._sleep = sleep or asyncio.sleep
        self._rng = rng
        self._observers: list[RetryObserver] = list(observers)

    def add_observer(self, observer: RetryObserver) -> None:
        self._observers.append(observer)

    def remove_observer(self, observer: RetryObserver) -> None:
        """Remove an observer.

        Raises:
            ValueError: If observer is not registered.
        """
        self._observers.remove(observer)

    async def run(
        self,
        operation: Operation[T],
        context: ErrorContext,
        config: RetryConfig | None = None,
    ) -> T:
        """Run ``operation`` with retries.

        Args:
            operation: Zero-argument callable returning an awaitable.
            context: Where the operation belongs; keys the error registry.
            config: Overrides the engine's default RetryConfig.

        Returns:
            The operation's result from the first successful attempt.

        Raises:
            Exception: The original exception of the terminal attempt.
        """
        cfg = config or self.config

        with with_error_context(context):
            for attempt in range(1, cfg.max_attempts + 1):
                try:
                    result = await operation()
                except Exception as exc:
                    classified = self.classifier.classify(
                        exc, context.with_metadata(attempt=attempt)
                    )
                    failures = self.error_registry.record(classified)

                    terminal = self._is_terminal(classified, attempt, cfg)
                    delay = None if terminal else next_delay(attempt, cfg, self._rng)

                    _logger.warning(
                        "retry.attempt_failed",
                        attempt=attempt,
                        max_attempts=cfg.max_attempts,
                        error_type=classified.type.value,
                        severity=classified.severity.value,
                        retryable=classified.retryable,
                        failure_count=failures,
                        delay_seconds=delay,
                        error=classified.message,
                    )
                    self._notify_observers(
                        RetryAttempt(
                            attempt=attempt,
                            max_attempts=cfg.max_attempts,
                            error=classified,
                            delay=delay,
                        )
                    )

                    if terminal:
                        _logger.error(
                            "retry.exhausted",
                            attempts=attempt,
                            error_type=classified.type.value,
                            retryable=classified.retryable,
                        )
                        await self._send_notification(classified)
                        raise

                    if cfg.notify_each_attempt:
                        await self._send_notification(classified)
                else:
                    self.error_registry.clear_context(context)
                    if attempt > 1:
                        _logger.info("retry.succeeded", attempt=attempt)
                    return result

                assert delay is not None
                await self._sleep(delay)

        # max_attempts >= 1 guarantees the loop returns or raises
        raise AssertionError("unreachable")

    async def handle_error(self, error: Any, context: ErrorContext) -> ClassifiedError:
        """Classify, record and notify a failure without retrying.

        For call sites that caught an error themselves and only want it
        counted and surfaced to the user.
        """
        classified = self.classifier.classify(error, context)
        self.error_registry.record(classified)
        with with_error_context(context):
            _logger.warning(
                "retry.error_handled",
                error_type=classified.type.value,
                severity=classified.severity.value,
                error=classified.message,
            )
        await self._send_notification(classified)
        return classified

    @overload
    def create_safe_operation(
        self,
        operation: Operation[T],
        context: ErrorContext,
        config: RetryConfig | None = None,
    ) -> Callable[[], Awaitable[T | None]]: ...

    @overload
    def create_safe_operation(
        self,
        operation: Operation[T],
        context: ErrorContext,
        config: RetryConfig | None = None,
        *,
        default: D,
    ) -> Callable[[], Awaitable[T | D]]: ...

    def create_safe_operation(
        self,
        operation: Operation[T],
        context: ErrorContext,
        config: RetryConfig | None = None,
        *,
        default: Any = None,
    ) -> Callable[[], Awaitable[Any]]:
        """Wrap ``operation`` so its terminal failure returns ``default``.

        The failure is still classified, recorded and notified by ``run()``;
        only the exception is swallowed.
        """

        async def safe() -> Any:
            try:
                return await self.run(operation, context, config)
            except Exception:
                _logger.debug("retry.safe_operation_failed", key=context.key)
                return default

        return safe

    @staticmethod
    def _is_terminal(classified: ClassifiedError, attempt: int, config: RetryConfig) -> bool:
        if not classified.retryable:
            return True
        if classified.type not in config.retryable_types:
            return True
        return attempt >= config.max_attempts

    def _notify_observers(self, attempt: RetryAttempt) -> None:
        for observer in self._observers:
            try:
                observer(attempt)
            except Exception as e:
                _logger.warning("retry.observer_failed", error=str(e))

    async def _send_notification(self, classified: ClassifiedError) -> None:
        if self.notifications is None:
            return
        await self.notifications.notify(classified)


def create_safe_operation(
    engine: RetryEngine,
    operation: Operation[T],
    context: ErrorContext,
    config: RetryConfig | None = None,
    *,
    default: Any = None,
) -> Callable[[], Awaitable[Any]]:
    """Module-level form of ``RetryEngine.create_safe_operation``."""
    return engine.create_safe_operation(operation, context, config, default=default)
