"""CLI command implementations."""

from .backoff import backoff
from .classify import classify
from .progress import progress
from .validate import validate

__all__ = [
    "backoff",
    "classify",
    "progress",
    "validate",
]
