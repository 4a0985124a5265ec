"""Exceptions raised by Bulwark itself.

Failures of wrapped operations are never wrapped in these: they propagate as
the original exception objects. These classes only cover conditions Bulwark
creates on its own.
"""

from __future__ import annotations


class BulwarkError(Exception):
    """Base class for errors raised by Bulwark."""


class CircuitOpenError(BulwarkError):
    """Raised when a circuit breaker rejects a call without attempting it.

    Attributes:
        name: Name of the breaker that rejected the call.
        retry_after: Seconds until the breaker lets a trial call through.
    """

    def __init__(self, name: str, retry_after: float | None = None) -> None:
        self.name = name
        self.retry_after = retry_after
        message = f"Circuit breaker '{name}' is open"
        if retry_after is not None:
            message += f" (retry in {retry_after:.1f}s)"
        super().__init__(message)


class ConfigurationError(BulwarkError):
    """Raised when a configuration file cannot be loaded or validated."""
