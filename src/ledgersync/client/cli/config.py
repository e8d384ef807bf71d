"""Configuration utilities for the ledgersync CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
import os
from pathlib import Path

CONFIG_HOME_ENV = "LEDGERSYNC_HOME"


def get_config_dir() -> Path:
    """Get the configuration directory for ledgersync.

    Returns:
        Path to $LEDGERSYNC_HOME, or ~/.ledgersync by default.
    """
    override = os.environ.get(CONFIG_HOME_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".ledgersync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def get_state_db_path() -> Path:
    """Get the path to the local record store."""
    return get_config_dir() / "state.db"


def load_config() -> dict[str, str]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, str]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def sanitize_replica_name(name: str) -> str:
    """Sanitize a replica name.

    Only allows alphanumeric characters, hyphens, and underscores.
    Other characters are replaced with underscores.

    Args:
        name: The replica name to sanitize.

    Returns:
        Safe replica name.
    """
    return "".join(c if c.isalnum() or c in "-_" else "_" for c in name)

