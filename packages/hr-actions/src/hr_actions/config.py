"""Settings: TOML file, then environment, then command-line overrides."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

import pydantic
from pydantic import BaseModel, Field

from .exceptions import ConfigError

DEFAULT_CONFIG_FILE = "hr-actions.toml"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8992

_ENV_OVERRIDES = {
    "HR_ACTIONS_DB": "db_path",
    "HR_ACTIONS_HOST": "host",
    "HR_ACTIONS_PORT": "port",
    "HR_ACTIONS_LOG_LEVEL": "log_level",
    "HR_ACTIONS_LOG_FILE": "log_file",
}


class Settings(BaseModel):
    db_path: str = "hr-actions.db"
    host: str = DEFAULT_HOST
    port: int = Field(default=DEFAULT_PORT, ge=0, le=65535)
    log_level: str = "info"
    log_file: str | None = None
    log_json: bool = False
    max_conflict_retries: int = Field(default=3, ge=0)


def _load_file(path: Path) -> dict[str, Any]:
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e
    # Keys may be written kebab-case in the file
    return {key.replace("-", "_"): value for key, value in data.items()}


def load_settings(
    path: str | Path | None = None,
    environ: dict[str, str] | None = None,
    **overrides: Any,
) -> Settings:
    """Build settings from ``path`` (or ./hr-actions.toml if present), the
    environment and explicit overrides, later sources winning. ``None``
    overrides are ignored."""
    environ = os.environ if environ is None else environ
    values: dict[str, Any] = {}

    if path is not None:
        values.update(_load_file(Path(path)))
    elif Path(DEFAULT_CONFIG_FILE).is_file():
        values.update(_load_file(Path(DEFAULT_CONFIG_FILE)))

    for env_name, field in _ENV_OVERRIDES.items():
        if env_name in environ:
            values[field] = environ[env_name]

    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return Settings.model_validate(values)
    except pydantic.ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
