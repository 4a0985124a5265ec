"""Retry and circuit breaker configuration models."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from bulwark.core.constants import (
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_BASE_DELAY_SECONDS,
    DEFAULT_FAILURE_THRESHOLD,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_DELAY_SECONDS,
    DEFAULT_RESET_TIMEOUT_SECONDS,
)
from bulwark.core.errors.codes import ErrorType

DEFAULT_RETRYABLE_TYPES: frozenset[ErrorType] = frozenset({
    ErrorType.NETWORK,
    ErrorType.TIMEOUT,
    ErrorType.RATE_LIMIT,
    ErrorType.DATABASE,
    ErrorType.UNKNOWN,
})


class RetryConfig(BaseModel):
    """Configuration for the retry engine and its backoff policy.

    Delays are in seconds. ``retryable_types`` narrows which classified
    errors may be retried; an error must be both retryable by
    classification and of one of these types.
    """

    max_attempts: int = Field(
        default=DEFAULT_MAX_ATTEMPTS, ge=1, description="Total attempts, including the first call"
    )
    base_delay: float = Field(
        default=DEFAULT_BASE_DELAY_SECONDS, ge=0, description="Delay before the second attempt"
    )
    max_delay: float = Field(
        default=DEFAULT_MAX_DELAY_SECONDS, ge=0, description="Cap for any single delay"
    )
    backoff_multiplier: float = Field(
        default=DEFAULT_BACKOFF_MULTIPLIER, ge=1, description="Growth factor between delays"
    )
    retryable_types: frozenset[ErrorType] = Field(
        default=DEFAULT_RETRYABLE_TYPES,
        description="Error types the engine is allowed to retry",
    )
    jitter: bool = Field(
        default=False,
        description="Randomize each delay in [0, delay] to spread out retry storms",
    )
    notify_each_attempt: bool = Field(
        default=False,
        description="Notify on every failed attempt instead of only the terminal one",
    )

    @model_validator(mode="after")
    def _validate_delay_range(self) -> RetryConfig:
        if self.base_delay > self.max_delay:
            raise ValueError(
                f"base_delay ({self.base_delay}) must not exceed max_delay ({self.max_delay})"
            )
        return self


class CircuitBreakerConfig(BaseModel):
    """Configuration for the circuit breaker pattern.

    State transitions:
    - CLOSED -> OPEN after failure_threshold consecutive failures
    - OPEN -> HALF_OPEN on the first call after reset_timeout has elapsed
    - HALF_OPEN -> CLOSED on success, back to OPEN on failure

    Example:
        circuit_breaker:
          failure_threshold: 5
          reset_timeout: 60
    """

    failure_threshold: int = Field(
        default=DEFAULT_FAILURE_THRESHOLD,
        ge=1,
        le=100,
        description="Consecutive failures before opening the circuit",
    )
    reset_timeout: float = Field(
        default=DEFAULT_RESET_TIMEOUT_SECONDS,
        gt=0,
        le=3600,
        description="Seconds to stay OPEN before letting a trial call through",
    )
