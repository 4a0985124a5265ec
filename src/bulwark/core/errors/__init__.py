"""Error classification and handling.

Re-exports all public symbols of the errors package.
"""

from bulwark.core.errors.codes import (
    SUGGESTED_ACTIONS,
    USER_MESSAGES,
    DatabaseCodes,
    ErrorType,
    Severity,
)
from bulwark.core.errors.exceptions import (
    BulwarkError,
    CircuitOpenError,
    ConfigurationError,
)
from bulwark.core.errors.models import ClassifiedError, ErrorContext
from bulwark.core.errors.classifier import (
    ErrorClassifier,
    classify,
    extract_code,
    extract_message,
)

__all__ = [
    "SUGGESTED_ACTIONS",
    "USER_MESSAGES",
    "BulwarkError",
    "CircuitOpenError",
    "ClassifiedError",
    "ConfigurationError",
    "DatabaseCodes",
    "ErrorClassifier",
    "ErrorContext",
    "ErrorType",
    "Severity",
    "classify",
    "extract_code",
    "extract_message",
]
