"""Formgrader config models and loading helpers."""

from __future__ import annotations

import json
import logging
from enum import StrEnum
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError


class LogLevel(StrEnum):
    """Supported logging levels."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    def to_logging(self) -> int:
        """Return the matching stdlib logging level number."""
        return logging.getLevelNamesMapping()[self.value.upper()]


class StorageSettings(BaseModel):
    """Workspace document storage configuration."""

    model_config = ConfigDict(extra="forbid")

    data_root: str = Field(default="data/workspaces", min_length=1)
    keep_backups: bool = True

    def resolve_data_root(self, base_dir: Path | None = None) -> Path:
        """Resolve data root against `base_dir` (default: working directory).

        Args:
            base_dir: Directory relative roots are resolved against.

        Returns:
            Absolute data root path.
        """
        root = Path(self.data_root).expanduser()
        if root.is_absolute():
            return root
        return (base_dir or Path.cwd()) / root


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(extra="forbid")

    level: LogLevel = LogLevel.INFO


class GraderConfig(BaseModel):
    """Root formgrader configuration model."""

    model_config = ConfigDict(extra="forbid")

    storage: StorageSettings = StorageSettings()
    logging: LoggingSettings = LoggingSettings()


class ConfigError(RuntimeError):
    """Raised when config cannot be decoded or validated."""


def _decode_config_payload(path: Path) -> dict[str, object]:
    """Decode config payload from JSON or YAML.

    Args:
        path: Config file path.

    Returns:
        Parsed mapping payload.

    Raises:
        ConfigError: If decode fails or payload is not an object.
    """
    raw = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid config JSON: {exc}") from exc
    else:
        try:
            payload = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid config YAML: {exc}") from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ConfigError("Invalid config payload: root must be an object")
    return payload


def load_config(path: Path) -> GraderConfig:
    """Load formgrader config from disk, defaulting when missing.

    Args:
        path: Config file path.

    Returns:
        Parsed config payload, or defaults when file does not exist.

    Raises:
        ConfigError: If payload decode or validation fails.
    """
    if not path.exists():
        return GraderConfig()
    payload = _decode_config_payload(path)
    try:
        return GraderConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config payload: {exc}") from exc
