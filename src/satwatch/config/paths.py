"""Centralized path management for satwatch.

All state (config, snapshot, logs) is stored under a single base directory.
The base directory can be overridden with the SATWATCH_HOME environment
variable.

Default locations:
- Linux/macOS: ~/.satwatch
- Windows: %USERPROFILE%\\.satwatch
"""

import os
from functools import lru_cache
from pathlib import Path

ENV_VAR = "SATWATCH_HOME"


@lru_cache(maxsize=1)
def get_satwatch_home() -> Path:
    """Get the base directory for all satwatch data.

    Resolution order:
    1. SATWATCH_HOME environment variable (if set)
    2. Platform default (~/.satwatch)
    """
    if env_home := os.environ.get(ENV_VAR):
        return Path(env_home).expanduser().resolve()

    return Path.home() / ".satwatch"


def get_config_path() -> Path:
    """Get the default config file path."""
    return get_satwatch_home() / "config.toml"


def get_state_path() -> Path:
    """Get the default snapshot file path (locations + watches)."""
    return get_satwatch_home() / "state.json"


def get_logs_path() -> Path:
    """Get the default logs directory path."""
    return get_satwatch_home() / "logs"
