"""Configuration module."""

from satwatch.config.loader import load_config
from satwatch.config.models import (
    ConfigError,
    N2YOConfig,
    SatwatchConfig,
    TelegramConfig,
    WatchConfig,
)
from satwatch.config.paths import (
    get_config_path,
    get_logs_path,
    get_satwatch_home,
    get_state_path,
)

__all__ = [
    "ConfigError",
    "N2YOConfig",
    "SatwatchConfig",
    "TelegramConfig",
    "WatchConfig",
    "get_config_path",
    "get_logs_path",
    "get_satwatch_home",
    "get_state_path",
    "load_config",
]
