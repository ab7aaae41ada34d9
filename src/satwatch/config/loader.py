"""Configuration loading from TOML files and environment variables."""

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import SecretStr
from pydantic import ValidationError as PydanticValidationError

from satwatch.config.models import ConfigError, SatwatchConfig
from satwatch.config.paths import get_config_path

STATE_PATH_ENV_VAR = "SATWATCH_STATE_PATH"


def _get_default_config_paths() -> list[Path]:
    """Get ordered list of default config file locations."""
    return [
        Path("config.toml"),  # Current directory
        get_config_path(),  # ~/.satwatch/config.toml (or SATWATCH_HOME)
        Path("/etc/satwatch/config.toml"),  # System-wide
    ]


def _set_secret_from_env(section: dict[str, Any], key: str, env_var: str) -> None:
    """Set a secret value from environment if not already set."""
    if section.get(key) is None:
        value = os.environ.get(env_var)
        if value:
            section[key] = SecretStr(value)


def _resolve_env_secrets(config: dict[str, Any]) -> dict[str, Any]:
    """Resolve secrets from environment variables where not set in config.

    Sections are created on demand so an env-only deployment works without
    any config file at all.
    """
    mappings = [
        ("telegram", "bot_token", "TELEGRAM_BOT_TOKEN"),
        ("n2yo", "api_key", "N2YO_KEY"),
    ]
    for parent_key, secret_key, env_var in mappings:
        section = config.get(parent_key)
        if section is None:
            if not os.environ.get(env_var):
                continue
            section = config[parent_key] = {}
        _set_secret_from_env(section, secret_key, env_var)

    if state_path := os.environ.get(STATE_PATH_ENV_VAR):
        config["state_path"] = state_path

    return config


def _find_config_path(path: Path | None) -> Path | None:
    if path is not None:
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        return config_path

    for default_path in _get_default_config_paths():
        expanded = default_path.expanduser()
        if expanded.exists():
            return expanded
    return None


def load_config(path: Path | None = None) -> SatwatchConfig:
    """Load configuration from a TOML file and the environment.

    Args:
        path: Explicit path to config file. If None, searches default
            locations and falls back to environment-only configuration.

    Returns:
        Validated SatwatchConfig instance.

    Raises:
        ConfigError: If an explicit file is missing or the config is invalid.
    """
    config_path = _find_config_path(path)

    raw_config: dict[str, Any] = {}
    if config_path is not None:
        try:
            with config_path.open("rb") as f:
                raw_config = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid config file {config_path}: {e}") from e

    raw_config = _resolve_env_secrets(raw_config)

    try:
        return SatwatchConfig.model_validate(raw_config)
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
