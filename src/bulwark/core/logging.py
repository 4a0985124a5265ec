"""Structured logging infrastructure for Bulwark.

Provides structured logging using structlog with Bulwark-specific context
such as the component and action a failure happened in. Supports console
and JSON output, optionally written to a rotating log file.

Example usage:
    from bulwark.core.logging import configure_logging, get_logger, with_error_context

    # Configure once at startup
    configure_logging(level="DEBUG", format="console")

    # Get a component-specific logger
    logger = get_logger("retry")
    logger.info("retry.attempt_failed", attempt=2)

    # Bind the call-site context for a scope
    ctx = ErrorContext(component="cv", action="analyze")
    with with_error_context(ctx):
        logger.warning("progress.timeout")  # includes component/action
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

if TYPE_CHECKING:
    from bulwark.core.errors.models import ErrorContext

# Sensitive field patterns that should never be logged
SENSITIVE_PATTERNS = frozenset({
    "api_key",
    "apikey",
    "token",
    "secret",
    "password",
    "credential",
    "bearer",
    "authorization",
})

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]

# Task-safe holder for the call-site context of the current operation
_current_error_context: ContextVar[ErrorContext | None] = ContextVar(
    "bulwark_error_context", default=None
)


def get_current_error_context() -> ErrorContext | None:
    """Get the ErrorContext bound to the current task, if any."""
    return _current_error_context.get()


@contextmanager
def with_error_context(ctx: ErrorContext) -> Iterator[ErrorContext]:
    """Bind an ErrorContext for the duration of a block.

    Log calls inside the block automatically carry ``component``, ``action``
    and ``user_id`` when the context processor is active.

    Args:
        ctx: The call-site context to bind.

    Yields:
        The bound context.
    """
    token = _current_error_context.set(ctx)
    try:
        yield ctx
    finally:
        _current_error_context.reset(token)


def _sanitize_value(key: str, value: Any) -> Any:
    """Return "[REDACTED]" for values whose key looks sensitive."""
    key_lower = key.lower()
    for pattern in SENSITIVE_PATTERNS:
        if pattern in key_lower:
            return "[REDACTED]"
    return value


def _sanitize_event_dict(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that redacts sensitive fields, one level deep."""
    sanitized: EventDict = {}
    for key, value in event_dict.items():
        if isinstance(value, dict):
            sanitized[key] = {k: _sanitize_value(k, v) for k, v in value.items()}
        else:
            sanitized[key] = _sanitize_value(key, value)
    return sanitized


def _add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that adds an ISO8601 UTC timestamp."""
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def _add_error_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that adds the bound ErrorContext fields.

    Explicitly passed fields take precedence over the bound context.
    """
    ctx = get_current_error_context()
    if ctx is not None:
        for key, value in ctx.to_log_dict().items():
            event_dict.setdefault(key, value)
    return event_dict


class BulwarkLogger:
    """Bulwark-specific logger wrapper around structlog.

    Bound to a component name, with optional extra context. The underlying
    structlog logger is fetched lazily on every call so loggers created at
    import time still respect a later ``configure_logging()``.
    """

    def __init__(self, component: str, **initial_context: Any) -> None:
        self._component = component
        self._context: dict[str, Any] = {"logger": component, **initial_context}

    def _get_logger(self) -> structlog.stdlib.BoundLogger:
        logger: structlog.stdlib.BoundLogger = structlog.get_logger().bind(**self._context)
        return logger

    def bind(self, **context: Any) -> BulwarkLogger:
        """Create a new logger with additional bound context."""
        new_logger = BulwarkLogger.__new__(BulwarkLogger)
        new_logger._component = self._component
        new_logger._context = {**self._context, **context}
        return new_logger

    def debug(self, event: str, **kw: Any) -> None:
        self._get_logger().debug(event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._get_logger().info(event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._get_logger().warning(event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._get_logger().error(event, **kw)

    def critical(self, event: str, **kw: Any) -> None:
        self._get_logger().critical(event, **kw)

    def exception(self, event: str, **kw: Any) -> None:
        """Log an exception with traceback. Call from inside an except block."""
        self._get_logger().exception(event, **kw)


def _build_processors(
    format: LogFormat,  # noqa: A002
    include_timestamps: bool,
    include_context: bool,
) -> list[Processor]:
    """Build the structlog processor chain for the given output format."""
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        _sanitize_event_dict,
    ]

    if include_context:
        processors.append(_add_error_context)

    if include_timestamps:
        processors.append(_add_timestamp)

    processors.extend([
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ])

    if format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    return processors


def configure_logging(
    level: LogLevel = "INFO",
    format: LogFormat = "console",  # noqa: A002
    file_path: Path | None = None,
    max_file_size_mb: int = 10,
    backup_count: int = 3,
    include_timestamps: bool = True,
    include_context: bool = True,
) -> None:
    """Configure Bulwark structured logging.

    Call once at application startup before any logging occurs.

    Args:
        level: Minimum log level to capture.
        format: "console" for human-readable output on stderr, "json" for
            one JSON object per line.
        file_path: Optional log file. When set, output goes to a rotating
            file instead of the standard streams.
        max_file_size_mb: Maximum log file size before rotation (MB).
        backup_count: Number of rotated log files to keep.
        include_timestamps: Whether to add ISO8601 timestamps.
        include_context: Whether to add the bound ErrorContext fields.
    """
    log_level = getattr(logging, level)

    handler: logging.Handler
    if file_path is not None:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            file_path,
            maxBytes=max_file_size_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding="utf-8",
        )
    elif format == "json":
        handler = logging.StreamHandler(sys.stdout)
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    # cache_logger_on_first_use=False keeps module-level loggers in sync with
    # configuration applied after import.
    structlog.configure(
        processors=_build_processors(format, include_timestamps, include_context),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(component: str, **initial_context: Any) -> BulwarkLogger:
    """Get a Bulwark logger for a component.

    Args:
        component: The component name (e.g., "retry", "circuit_breaker").
        **initial_context: Additional context to bind.

    Returns:
        A BulwarkLogger bound to the component.
    """
    return BulwarkLogger(component, **initial_context)


__all__ = [
    "BulwarkLogger",
    "LogFormat",
    "LogLevel",
    "SENSITIVE_PATTERNS",
    "configure_logging",
    "get_current_error_context",
    "get_logger",
    "with_error_context",
]
