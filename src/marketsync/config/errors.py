"""Configuration error definitions."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Raised when a configuration value cannot be parsed or is out of range."""


class MissingConfigurationError(ConfigurationError):
    """Raised when required configuration values are absent or blank."""


class InvalidConfigurationError(ConfigurationError):
    def __init__(self, name: str, value: str, reason: str) -> None:
        super().__init__(f"Invalid value for {name}={value!r}: {reason}")
        self.name = name
        self.value = value
