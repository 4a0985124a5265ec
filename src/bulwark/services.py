"""Wiring of the resilience services into one explicitly passed object.

Nothing in Bulwark is a module-level singleton: an application builds one
ResilienceServices at startup (or one per test) and hands it to the code
that needs it.

Example usage:
    services = create_services(BulwarkConfig.from_yaml(Path("bulwark.yaml")))

    data = await services.breakers.get("profiles").call(
        lambda: services.retry.run(load_profile, ErrorContext("profile", "load"))
    )
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from bulwark.core.config import BulwarkConfig
from bulwark.core.errors import ErrorClassifier
from bulwark.core.logging import get_logger
from bulwark.execution.circuit_breaker import CircuitBreakerRegistry
from bulwark.execution.progress import ProgressOrchestrator
from bulwark.execution.retry import RetryEngine, SleepFn
from bulwark.execution.scheduler import AsyncioScheduler, Scheduler
from bulwark.notifications import NotificationManager, Notifier, create_notifiers
from bulwark.state.registry import ErrorRegistry, LoadingRegistry

_logger = get_logger("services")


@dataclass
class ResilienceServices:
    """Everything a call site needs to run operations resiliently."""

    config: BulwarkConfig
    classifier: ErrorClassifier
    errors: ErrorRegistry
    loading: LoadingRegistry
    notifications: NotificationManager
    retry: RetryEngine
    breakers: CircuitBreakerRegistry
    progress: ProgressOrchestrator

    def get_error_stats(self) -> dict[str, Any]:
        """Diagnostics: failure counts, recent error types and breaker stats."""
        return {
            "error_counts": self.errors.get_error_stats(),
            "error_types": {t.value: n for t, n in self.errors.get_type_stats().items()},
            "circuit_breakers": {
                name: stats.to_dict() for name, stats in self.breakers.get_all_stats().items()
            },
            "loading": self.loading.get_active_keys(),
        }

    async def close(self) -> None:
        """Stop every progress session and close the notifiers."""
        self.progress.stop_all()
        await self.notifications.close()


def create_services(
    config: BulwarkConfig | None = None,
    *,
    scheduler: Scheduler | None = None,
    notifiers: list[Notifier] | None = None,
    connectivity: Callable[[], bool] | None = None,
    sleep: SleepFn | None = None,
    clock: Callable[[], float] | None = None,
) -> ResilienceServices:
    """Build a fresh, isolated set of services.

    Args:
        config: Configuration (defaults everywhere when omitted).
        scheduler: Timer source for progress sessions (default: asyncio).
        notifiers: Notifiers to use instead of those built from config.
        connectivity: Check returning False while offline.
        sleep: Retry sleep, replaceable in tests.
        clock: Monotonic clock for circuit breakers.
    """
    cfg = config or BulwarkConfig()
    classifier = ErrorClassifier(connectivity=connectivity)
    errors = ErrorRegistry()
    loading = LoadingRegistry()
    notifications = NotificationManager(
        notifiers if notifiers is not None else create_notifiers(cfg.notifications)
    )

    services = ResilienceServices(
        config=cfg,
        classifier=classifier,
        errors=errors,
        loading=loading,
        notifications=notifications,
        retry=RetryEngine(
            error_registry=errors,
            notifications=notifications,
            classifier=classifier,
            config=cfg.retry,
            sleep=sleep,
        ),
        breakers=CircuitBreakerRegistry(cfg.circuit_breaker, clock=clock),
        progress=ProgressOrchestrator(
            scheduler or AsyncioScheduler(),
            loading_registry=loading,
            classifier=classifier,
            config=cfg.progress,
        ),
    )
    _logger.debug(
        "services.created",
        notifiers=notifications.notifier_count,
        max_attempts=cfg.retry.max_attempts,
        failure_threshold=cfg.circuit_breaker.failure_threshold,
    )
    return services
