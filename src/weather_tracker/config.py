"""Configuration loading and validation utilities."""
from __future__ import annotations

import pathlib
from typing import Any, Dict

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator


class ConfigurationError(RuntimeError):
    """Raised when configuration cannot be loaded or is invalid."""


class DatabaseConfig(BaseModel):
    """Database related settings."""

    url: str
    echo: bool = False
    retry_attempts: int = Field(default=3, ge=1)
    create_schema: bool = True

    @field_validator("url")
    @classmethod
    def _require_url(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("database url must not be empty")
        return value


class LoggingConfig(BaseModel):
    """Logging related settings."""

    level: str = Field(default="info")
    json_output: bool = Field(default=False, alias="json")
    log_file: str | None = None

    model_config = {"populate_by_name": True}


class AppConfig(BaseModel):
    """Root configuration object."""

    database: DatabaseConfig
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(path: str | pathlib.Path) -> AppConfig:
    """Load and validate the YAML configuration file."""

    config_path = pathlib.Path(path).expanduser().resolve()
    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as handle:
        try:
            raw: Dict[str, Any] = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Configuration file {config_path} is not valid YAML") from exc
    if not isinstance(raw, dict):
        raise ConfigurationError("Configuration root must be a mapping")

    try:
        return AppConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {exc}") from exc


__all__ = [
    "AppConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "LoggingConfig",
    "load_config",
]
