"""Error types, severity levels and the static copy attached to them.

Error Taxonomy
==============

Every failure observed by Bulwark is mapped onto exactly one ErrorType.
The type, not an exception class hierarchy, decides retry behavior and the
copy shown to users.

    | Type           | Retryable | Default severity |
    |----------------|-----------|------------------|
    | authentication | No        | high             |
    | network        | Yes       | medium           |
    | database       | Yes*      | medium           |
    | rate_limit     | Yes       | medium           |
    | timeout        | Yes       | medium           |
    | validation     | No        | low              |
    | unknown        | Yes*      | medium           |

    *database codes 42P01, 42501 and 23505 are permanent and never retried;
    unknown errors carrying a 400/404 code are never retried.
"""

from __future__ import annotations

from enum import Enum


class ErrorType(str, Enum):
    """High-level category of a failure."""

    NETWORK = "network"
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    DATABASE = "database"
    UNKNOWN = "unknown"


class Severity(str, Enum):
    """How urgently a failure needs the user's attention.

    Compare with ``rank``: a higher rank is more severe.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def at_least(self, other: Severity) -> bool:
        """True if this severity is the same as or more severe than ``other``."""
        return self.rank >= other.rank


_SEVERITY_RANK: dict[Severity, int] = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class DatabaseCodes:
    """SQL-engine error codes that the classifier treats specially."""

    UNDEFINED_TABLE = "42P01"
    INSUFFICIENT_PRIVILEGE = "42501"
    UNIQUE_VIOLATION = "23505"
    CONNECTION_FAILURE = "PGRST301"

    PERMANENT: frozenset[str] = frozenset({
        UNDEFINED_TABLE,
        INSUFFICIENT_PRIVILEGE,
        UNIQUE_VIOLATION,
    })

    SQLSTATE_PREFIXES: tuple[str, ...] = ("42", "23")
    """Classes of 5-character SQLSTATE codes (syntax/access, integrity)."""

    POSTGREST_PREFIX = "PGRST"

    @classmethod
    def matches(cls, code: str) -> bool:
        """True if ``code`` looks like a database error code.

        HTTP statuses such as 429 share the SQLSTATE prefixes, so only
        5-character codes count.
        """
        if code.startswith(cls.POSTGREST_PREFIX):
            return True
        return len(code) == 5 and code.startswith(cls.SQLSTATE_PREFIXES)


PERMANENT_CLIENT_CODES: frozenset[str] = frozenset({"400", "404"})
"""Codes that make an otherwise unknown failure non-retryable."""

AUTH_CODES: frozenset[str] = frozenset({"401", "403"})
RATE_LIMIT_CODES: frozenset[str] = frozenset({"429"})


USER_MESSAGES: dict[ErrorType, str] = {
    ErrorType.NETWORK: "Network connection issue. Please check your internet connection.",
    ErrorType.VALIDATION: "Please check your input and try again.",
    ErrorType.AUTHENTICATION: "Authentication required. Please sign in to continue.",
    ErrorType.RATE_LIMIT: "Too many requests. Please wait a moment before trying again.",
    ErrorType.TIMEOUT: "Request timed out. The operation took longer than expected.",
    ErrorType.DATABASE: "Database temporarily unavailable. Please try again later.",
    ErrorType.UNKNOWN: "An unexpected error occurred. Please try again.",
}

SUGGESTED_ACTIONS: dict[ErrorType, tuple[str, ...]] = {
    ErrorType.NETWORK: (
        "Check your internet connection",
        "Try again in a few moments",
        "Contact support if the issue persists",
    ),
    ErrorType.VALIDATION: (
        "Review the form for any missing or invalid fields",
        "Ensure all required fields are filled out",
        "Check that your input matches the expected format",
    ),
    ErrorType.AUTHENTICATION: (
        "Sign in to your account",
        "Check your permissions",
        "Contact support if you believe this is an error",
    ),
    ErrorType.RATE_LIMIT: (
        "Wait a few minutes before retrying",
        "Reduce the frequency of your requests",
    ),
    ErrorType.TIMEOUT: (
        "Try again with a smaller request",
        "Check your internet connection",
        "Contact support if timeouts persist",
    ),
    ErrorType.DATABASE: (
        "Try again in a few moments",
        "Contact support if the issue persists",
    ),
    ErrorType.UNKNOWN: (
        "Try the operation again",
        "Refresh the page if the issue persists",
        "Contact support with details about what you were doing",
    ),
}
