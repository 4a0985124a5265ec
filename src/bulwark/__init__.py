"""Bulwark: resilience and progress orchestration for async operations.

Wraps opaque async operations with error classification, bounded retry with
exponential backoff, a circuit breaker, and staged progress sessions that
drive long-running UI feedback.
"""

__version__ = "0.3.0"

from bulwark.core.errors import (
    CircuitOpenError,
    ClassifiedError,
    ErrorClassifier,
    ErrorContext,
    ErrorType,
    Severity,
)
from bulwark.execution.circuit_breaker import CircuitBreaker, CircuitState
from bulwark.execution.retry import RetryEngine, create_safe_operation
from bulwark.services import ResilienceServices, create_services

__all__ = [
    "__version__",
    "CircuitBreaker",
    "CircuitOpenError",
    "CircuitState",
    "ClassifiedError",
    "ErrorClassifier",
    "ErrorContext",
    "ErrorType",
    "ResilienceServices",
    "RetryEngine",
    "Severity",
    "create_safe_operation",
    "create_services",
]
