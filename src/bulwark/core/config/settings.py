"""Top-level Bulwark configuration and loaders."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from bulwark.core.errors.codes import Severity
from bulwark.core.errors.exceptions import ConfigurationError

from .execution import CircuitBreakerConfig, RetryConfig
from .progress import ProgressConfig


class LogConfig(BaseModel):
    """Logging output settings."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["console", "json"] = "console"
    file_path: Path | None = None


class NotificationConfig(BaseModel):
    """Notifier selection.

    Example:
        notifications:
          - type: console
            min_severity: medium
          - type: log
    """

    type: Literal["console", "log"] = "log"
    min_severity: Severity = Severity.LOW


class BulwarkConfig(BaseModel):
    """Complete configuration for a set of resilience services."""

    retry: RetryConfig = Field(default_factory=RetryConfig)
    circuit_breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)
    progress: ProgressConfig = Field(default_factory=ProgressConfig)
    notifications: list[NotificationConfig] = Field(
        default_factory=lambda: [NotificationConfig()]
    )
    logging: LogConfig = Field(default_factory=LogConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> BulwarkConfig:
        """Load configuration from a YAML file.

        Raises:
            ConfigurationError: If the file is missing, unparsable or invalid.
        """
        try:
            with open(path) as f:
                text = f.read()
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
        return cls.from_yaml_string(text)

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> BulwarkConfig:
        """Load configuration from a YAML string.

        Raises:
            ConfigurationError: If the YAML is unparsable or invalid.
        """
        try:
            data = yaml.safe_load(yaml_str)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML: {e}") from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError("Config root must be a mapping")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e
