"""ErrorClassifier implementation for ordered pattern-based classification.

Maps a raw failure (exception, message string, or mapping with
``message``/``code``) onto the fixed ErrorType taxonomy. Rules are tried in
a fixed order and the first match wins, because a single message can match
several of them (an auth failure whose text also mentions "network").

Rule order:
    1. authentication
    2. network
    3. database
    4. rate limit
    5. timeout
    6. validation
    7. unknown (default)
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from typing import Any

from .codes import (
    AUTH_CODES,
    PERMANENT_CLIENT_CODES,
    RATE_LIMIT_CODES,
    SUGGESTED_ACTIONS,
    USER_MESSAGES,
    DatabaseCodes,
    ErrorType,
    Severity,
)
from .exceptions import CircuitOpenError
from .models import ClassifiedError, ErrorContext

# =============================================================================
# Default pattern strings, one list per rule.
# =============================================================================

_AUTH_PATTERNS: list[str] = [
    r"auth",
    r"unauthorized",
    r"forbidden",
    r"session",
]

_NETWORK_PATTERNS: list[str] = [
    r"network",
    r"fetch",
    r"connection",
]

_DATABASE_PATTERNS: list[str] = [
    r"relation",
    r"column",
    r"database",
]

_RATE_LIMIT_PATTERNS: list[str] = [
    r"rate.?limit",
    r"too many requests",
]

_TIMEOUT_PATTERNS: list[str] = [
    r"timeout",
    r"timed out",
]

_VALIDATION_PATTERNS: list[str] = [
    r"validation",
    r"invalid",
    r"required",
    r"format",
]

_CREDENTIAL_PATTERNS: list[str] = [
    r"credentials",
    r"password",
]


def _compile(strings: list[str]) -> re.Pattern[str]:
    """Merge a list of regex strings into one case-insensitive alternation."""
    return re.compile("|".join(f"(?:{p})" for p in strings), re.IGNORECASE)


def _always_online() -> bool:
    return True


def extract_message(error: Any) -> str:
    """Get the human-readable message of a raw failure."""
    if isinstance(error, str):
        return error
    if isinstance(error, Mapping):
        message = error.get("message")
        return str(message) if message is not None else str(dict(error))
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    return str(error)


def extract_code(error: Any) -> str | None:
    """Get the structured code of a raw failure, if it carries one.

    Looks at ``code``, then ``status_code``, then ``status`` (attributes for
    exceptions, keys for mappings).
    """
    for name in ("code", "status_code", "status"):
        if isinstance(error, Mapping):
            value = error.get(name)
        else:
            value = getattr(error, name, None)
        if value is not None and not callable(value):
            text = str(value).strip()
            if text:
                return text
    return None


class ErrorClassifier:
    """Classifies raw failures into ClassifiedError records.

    Deterministic and total: every input produces a ClassifiedError, with
    unrecognized failures falling into ``unknown``/``medium``.

    Args:
        connectivity: Optional check returning False when the client is
            offline. While offline every failure that is not an
            authentication failure is classified as a network error, ahead
            of the database, rate-limit, timeout and validation rules.
    """

    def __init__(self, connectivity: Callable[[], bool] | None = None) -> None:
        self._connectivity = connectivity or _always_online
        self._auth = _compile(_AUTH_PATTERNS)
        self._network = _compile(_NETWORK_PATTERNS)
        self._database = _compile(_DATABASE_PATTERNS)
        self._rate_limit = _compile(_RATE_LIMIT_PATTERNS)
        self._timeout = _compile(_TIMEOUT_PATTERNS)
        self._validation = _compile(_VALIDATION_PATTERNS)
        self._credentials = _compile(_CREDENTIAL_PATTERNS)

    def is_online(self) -> bool:
        """Current answer of the connectivity check."""
        return self._connectivity()

    def classify(self, error: Any, context: ErrorContext) -> ClassifiedError:
        """Classify a raw failure.

        Args:
            error: Exception, message string, or mapping with message/code.
            context: Where the failure happened.

        Returns:
            A fresh ClassifiedError.
        """
        message = extract_message(error)
        code = extract_code(error)
        original = error if isinstance(error, BaseException) else None

        if isinstance(error, CircuitOpenError):
            return self._circuit_open(error, message, context)

        upper_code = code.upper() if code else None

        if self._is_auth(message, upper_code):
            return self._authentication(message, upper_code, context, original)
        online = self.is_online()
        if self._is_network(error, message, online):
            return self._network_error(message, upper_code, context, original, online)
        if self._is_database(message, upper_code):
            return self._database_error(message, upper_code, context, original)
        if self._is_rate_limit(message, upper_code):
            return self._build(
                ErrorType.RATE_LIMIT, Severity.MEDIUM, message, upper_code,
                context, original, retryable=True,
            )
        if self._is_timeout(error, message):
            return self._build(
                ErrorType.TIMEOUT, Severity.MEDIUM, message, upper_code,
                context, original, retryable=True,
            )
        if self._validation.search(message):
            return self._build(
                ErrorType.VALIDATION, Severity.LOW, message, upper_code,
                context, original, retryable=False,
            )
        return self._build(
            ErrorType.UNKNOWN, Severity.MEDIUM, message, upper_code, context, original,
            retryable=upper_code not in PERMANENT_CLIENT_CODES,
        )

    # -------------------------------------------------------------------------
    # Rule predicates
    # -------------------------------------------------------------------------

    def _is_auth(self, message: str, code: str | None) -> bool:
        return code in AUTH_CODES or bool(self._auth.search(message))

    def _is_network(self, error: Any, message: str, online: bool) -> bool:
        if isinstance(error, ConnectionError) or not online:
            return True
        return bool(self._network.search(message))

    def _is_database(self, message: str, code: str | None) -> bool:
        if code is not None and DatabaseCodes.matches(code):
            return True
        return bool(self._database.search(message))

    def _is_rate_limit(self, message: str, code: str | None) -> bool:
        return code in RATE_LIMIT_CODES or bool(self._rate_limit.search(message))

    def _is_timeout(self, error: Any, message: str) -> bool:
        return isinstance(error, TimeoutError) or bool(self._timeout.search(message))

    # -------------------------------------------------------------------------
    # Builders
    # -------------------------------------------------------------------------

    def _build(
        self,
        error_type: ErrorType,
        severity: Severity,
        message: str,
        code: str | None,
        context: ErrorContext,
        original: BaseException | None,
        *,
        retryable: bool,
        requires_auth: bool = False,
        user_message: str | None = None,
    ) -> ClassifiedError:
        return ClassifiedError(
            type=error_type,
            severity=severity,
            message=message,
            user_message=user_message or USER_MESSAGES[error_type],
            retryable=retryable,
            requires_auth=requires_auth,
            suggested_actions=SUGGESTED_ACTIONS[error_type],
            code=code,
            context=context,
            original_error=original,
        )

    def _authentication(
        self,
        message: str,
        code: str | None,
        context: ErrorContext,
        original: BaseException | None,
    ) -> ClassifiedError:
        lowered = message.lower()
        if "session" in lowered:
            return self._build(
                ErrorType.AUTHENTICATION, Severity.MEDIUM, message, code, context, original,
                retryable=False,
                requires_auth=True,
                user_message="Your session has expired. Please sign in again.",
            )
        if self._credentials.search(message):
            return self._build(
                ErrorType.AUTHENTICATION, Severity.LOW, message, code, context, original,
                retryable=False,
                user_message="Invalid email or password. Please check your credentials.",
            )
        return self._build(
            ErrorType.AUTHENTICATION, Severity.HIGH, message, code, context, original,
            retryable=False,
            requires_auth=True,
        )

    def _network_error(
        self,
        message: str,
        code: str | None,
        context: ErrorContext,
        original: BaseException | None,
        online: bool,
    ) -> ClassifiedError:
        if not online:
            return self._build(
                ErrorType.NETWORK, Severity.HIGH, message, code, context, original,
                retryable=True,
                user_message="You appear to be offline. Please check your internet connection.",
            )
        return self._build(
            ErrorType.NETWORK, Severity.MEDIUM, message, code, context, original,
            retryable=True,
        )

    def _database_error(
        self,
        message: str,
        code: str | None,
        context: ErrorContext,
        original: BaseException | None,
    ) -> ClassifiedError:
        if code == DatabaseCodes.UNDEFINED_TABLE:
            return self._build(
                ErrorType.DATABASE, Severity.CRITICAL, message, code, context, original,
                retryable=False,
                user_message="System is being set up. Please try again in a moment.",
            )
        if code == DatabaseCodes.INSUFFICIENT_PRIVILEGE:
            return self._build(
                ErrorType.DATABASE, Severity.HIGH, message, code, context, original,
                retryable=False,
                requires_auth=True,
                user_message="Access denied. Please contact support if this persists.",
            )
        if code == DatabaseCodes.UNIQUE_VIOLATION:
            return self._build(
                ErrorType.DATABASE, Severity.HIGH, message, code, context, original,
                retryable=False,
                user_message="This record already exists.",
            )
        return self._build(
            ErrorType.DATABASE, Severity.MEDIUM, message, code, context, original,
            retryable=True,
        )

    def _circuit_open(
        self,
        error: CircuitOpenError,
        message: str,
        context: ErrorContext,
    ) -> ClassifiedError:
        return ClassifiedError(
            type=ErrorType.UNKNOWN,
            severity=Severity.MEDIUM,
            message=message,
            user_message="This service is temporarily unavailable. Please try again shortly.",
            retryable=False,
            suggested_actions=("Wait a moment before trying again",),
            context=context,
            original_error=error,
            circuit_open=True,
        )


_default_classifier = ErrorClassifier()


def classify(error: Any, context: ErrorContext) -> ClassifiedError:
    """Classify ``error`` with a default (always online) classifier."""
    return _default_classifier.classify(error, context)
