"""Configuration models for Bulwark.

Re-exports all configuration classes.
"""

from bulwark.core.config.execution import (
    DEFAULT_RETRYABLE_TYPES,
    CircuitBreakerConfig,
    RetryConfig,
)
from bulwark.core.config.progress import (
    DEFAULT_PRESET,
    STAGE_PRESETS,
    ProgressConfig,
    StageConfig,
)
from bulwark.core.config.settings import BulwarkConfig, LogConfig, NotificationConfig

__all__ = [
    "DEFAULT_PRESET",
    "DEFAULT_RETRYABLE_TYPES",
    "STAGE_PRESETS",
    "BulwarkConfig",
    "CircuitBreakerConfig",
    "LogConfig",
    "NotificationConfig",
    "ProgressConfig",
    "RetryConfig",
    "StageConfig",
]
