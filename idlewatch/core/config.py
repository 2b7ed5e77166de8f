"""Configuration loader for IdleWatch.

Handles loading, saving, and default creation of config.json.
Resolves platform-appropriate data directories:
  - macOS:   ~/Library/Application Support/IdleWatch
  - Windows: %APPDATA%/IdleWatch
  - Other:   ~/.idlewatch

Only settings live here. Idle state itself is never written to disk.
"""

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

from idlewatch.core.errors import InvalidConfiguration
from idlewatch.core.monitor import duration_seconds

logger = logging.getLogger(__name__)


def get_data_directory() -> Path:
    """Return the platform-appropriate data directory for IdleWatch."""
    if sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    elif sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        base = Path(appdata) if appdata else Path.home() / "AppData" / "Roaming"
    else:
        base = Path.home()
        return base / ".idlewatch"
    return base / "IdleWatch"


def get_default_config() -> dict[str, Any]:
    """Return the default configuration dictionary."""
    return {
        "idle_threshold_seconds": 300,
        "poll_interval_seconds": 5,
        "input_poll_interval_seconds": 1,
        "track_applications": True,
        "report_min_minutes": 5,
        "locked_app_ids": ["com.apple.loginwindow", "loginwindow", "LockApp"],
    }


def get_default_config_path() -> Path:
    """Return the default path for config.json."""
    return get_data_directory() / "config.json"


def load_config(path: str | Path | None = None) -> dict[str, Any]:
    """Load configuration from a JSON file.

    If *path* is ``None``, the platform default location is used.
    When the file does not exist, a default configuration is created,
    written to disk, and returned.  If the file exists but is invalid
    JSON, the error is logged and defaults are returned.  Keys missing
    from the file are filled in from the defaults.
    """
    config_path = Path(path) if path is not None else get_default_config_path()

    if not config_path.exists():
        logger.info("Config file not found at %s; creating defaults.", config_path)
        defaults = get_default_config()
        save_config(defaults, config_path)
        return defaults

    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError("Top-level JSON value must be an object")
    except (json.JSONDecodeError, ValueError, OSError) as exc:
        logger.error("Failed to load config from %s: %s; using defaults.", config_path, exc)
        return get_default_config()

    config = get_default_config()
    config.update(data)
    return config


def save_config(config: dict[str, Any], path: str | Path | None = None) -> None:
    """Write *config* to a JSON file.

    If *path* is ``None``, the platform default location is used.
    Parent directories are created automatically.
    """
    config_path = Path(path) if path is not None else get_default_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)
        fh.write("\n")


def monitor_settings(config: dict[str, Any]) -> tuple[float, float]:
    """Return the validated ``(threshold, poll_interval)`` pair from *config*.

    Raises:
        InvalidConfiguration: If either value is missing or not positive.
    """
    try:
        threshold = config["idle_threshold_seconds"]
        poll_interval = config["poll_interval_seconds"]
    except KeyError as exc:
        raise InvalidConfiguration(f"Missing config key: {exc.args[0]}") from exc
    return (
        duration_seconds(threshold, "idle_threshold_seconds"),
        duration_seconds(poll_interval, "poll_interval_seconds"),
    )
