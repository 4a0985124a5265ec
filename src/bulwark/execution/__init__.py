"""Execution layer: retries, backoff, circuit breakers and progress timelines."""

from bulwark.execution.backoff import delay_schedule, next_delay
from bulwark.execution.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitBreakerStats,
    CircuitState,
)
from bulwark.execution.progress import (
    STAGE_PRESETS,
    ProgressOrchestrator,
    ProgressSession,
    ProgressSnapshot,
    ProgressStatus,
    get_preset,
)
from bulwark.execution.retry import (
    RetryAttempt,
    RetryEngine,
    RetryObserver,
    create_safe_operation,
)
from bulwark.execution.scheduler import (
    AsyncioScheduler,
    CancelHandle,
    ManualScheduler,
    Scheduler,
)

__all__ = [
    "STAGE_PRESETS",
    "AsyncioScheduler",
    "CancelHandle",
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "CircuitBreakerStats",
    "CircuitState",
    "ManualScheduler",
    "ProgressOrchestrator",
    "ProgressSession",
    "ProgressSnapshot",
    "ProgressStatus",
    "RetryAttempt",
    "RetryEngine",
    "RetryObserver",
    "Scheduler",
    "create_safe_operation",
    "delay_schedule",
    "get_preset",
    "next_delay",
]
