"""Settings for the engine core and its views.

Precedence, lowest first: built-in defaults, the YAML settings file, the
CARGOHOLD_* environment variables, explicit overrides (CLI options).
"""

import os
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from cargohold.errors import ConfigError
from cargohold.logging_utils import LOG_LEVELS

DEFAULT_CONFIG_PATH = os.path.expanduser("~/.cargohold/config.yml")

ENV_CONFIG = "CARGOHOLD_CONFIG"
ENV_ENGINE = "CARGOHOLD_ENGINE"
ENV_TIMEOUT = "CARGOHOLD_TIMEOUT"
ENV_LOG_LEVEL = "CARGOHOLD_LOG_LEVEL"


class Settings(BaseModel):
    engine_binary: str = "docker"
    # Seconds per engine call; None disables the limit.
    command_timeout: Optional[float] = Field(300.0, gt=0)
    log_level: str = "info"
    api_host: str = "127.0.0.1"
    api_port: int = Field(8000, gt=0, lt=65536)

    @field_validator("engine_binary")
    @classmethod
    def _engine_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("engine_binary must not be empty")
        return value.strip()

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.strip().lower()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(LOG_LEVELS)}")
        return level


def _read_yaml(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping, got {type(data).__name__}")
    return data


def _timeout_from_env(raw: str) -> Optional[float]:
    raw = raw.strip().lower()
    if raw in ("", "0", "none", "off"):
        return None
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{ENV_TIMEOUT} must be a number of seconds, got '{raw}'")


def _env_values(environ: Mapping[str, str]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    if environ.get(ENV_ENGINE):
        values["engine_binary"] = environ[ENV_ENGINE]
    if ENV_TIMEOUT in environ:
        values["command_timeout"] = _timeout_from_env(environ[ENV_TIMEOUT])
    if environ.get(ENV_LOG_LEVEL):
        values["log_level"] = environ[ENV_LOG_LEVEL]
    return values


def load_settings(
    path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> Settings:
    """
    Builds Settings from the settings file, the environment and overrides.

    Args:
        path: Settings file. Defaults to $CARGOHOLD_CONFIG, then
              ~/.cargohold/config.yml. A missing default file is not an error;
              a missing explicit file is.
        environ: Environment mapping, os.environ by default.
        **overrides: Final values; None entries are ignored.

    Raises:
        ConfigError: If the file or any value is invalid.
    """
    environ = os.environ if environ is None else environ
    explicit = path or environ.get(ENV_CONFIG)
    config_path = os.path.expanduser(explicit or DEFAULT_CONFIG_PATH)

    values: Dict[str, Any] = {}
    if os.path.exists(config_path):
        values.update(_read_yaml(config_path))
    elif explicit:
        raise ConfigError(f"Settings file not found: {config_path}")

    values.update(_env_values(environ))
    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}")
