"""Formgrader configuration loading."""

from formgrader.config.settings import (
    ConfigError,
    GraderConfig,
    LoggingSettings,
    LogLevel,
    StorageSettings,
    load_config,
)

__all__ = [
    "ConfigError",
    "GraderConfig",
    "LogLevel",
    "LoggingSettings",
    "StorageSettings",
    "load_config",
]
