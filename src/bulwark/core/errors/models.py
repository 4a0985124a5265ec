"""Data models for error classification.

This module provides:
- ErrorContext: where a failure happened (component/action provenance)
- ClassifiedError: a single failure with its type, severity and retry flag
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from bulwark.utils.time import utc_now

from .codes import ErrorType, Severity


@dataclass(frozen=True)
class ErrorContext:
    """Immutable call-site provenance for a failure.

    Attributes:
        component: Feature or service the operation belongs to (e.g. "cv").
        action: The operation within the component (e.g. "analyze").
        user_id: Optional id of the acting user.
        metadata: Free-form extra details (attempt number, ids, ...).
    """

    component: str
    action: str
    user_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        """Registry key for this context: ``"component.action"``."""
        return f"{self.component}.{self.action}"

    def with_metadata(self, **metadata: Any) -> ErrorContext:
        """Return a copy with ``metadata`` merged over the existing metadata."""
        return replace(self, metadata={**self.metadata, **metadata})

    def to_log_dict(self) -> dict[str, Any]:
        """Fields to attach to log entries (None values omitted)."""
        result: dict[str, Any] = {"component": self.component, "action": self.action}
        if self.user_id is not None:
            result["user_id"] = self.user_id
        return result


@dataclass(frozen=True)
class ClassifiedError:
    """A failure with its classification and metadata.

    Produced fresh on every failed attempt and never mutated. The original
    exception is kept for reference only; callers always see the original
    raised, never this wrapper.
    """

    type: ErrorType
    severity: Severity
    message: str
    user_message: str
    retryable: bool
    context: ErrorContext
    requires_auth: bool = False
    suggested_actions: tuple[str, ...] = ()
    code: str | None = None
    timestamp: datetime = field(default_factory=utc_now)
    original_error: BaseException | None = field(default=None, compare=False, repr=False)
    circuit_open: bool = False
    """True when the failure is a circuit breaker rejection (call never made)."""

    @property
    def key(self) -> str:
        """Registry key of the context the error occurred in."""
        return self.context.key

    def to_dict(self) -> dict[str, Any]:
        """Convert to a dictionary for logging and JSON output."""
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "message": self.message,
            "user_message": self.user_message,
            "retryable": self.retryable,
            "requires_auth": self.requires_auth,
            "suggested_actions": list(self.suggested_actions),
            "code": self.code,
            "circuit_open": self.circuit_open,
            "context": {
                **self.context.to_log_dict(),
                "metadata": dict(self.context.metadata),
            },
            "timestamp": self.timestamp.isoformat(),
        }
