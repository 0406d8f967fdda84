from __future__ import annotations

"""
Configuration Domain Management.

Handles persistent storage of engine and cache settings using JSON.
Missing or corrupted files fall back to defaults; unknown keys are kept so
newer configuration files remain readable by older builds.
"""

import json
import logging
import os
from typing import Any, Dict, Optional

from textui_templates.infra.fs import get_user_data_dir

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Constants & Defaults
# -----------------------------------------------------------------------------
CONFIG_FILE_NAME = "config.json"
CURRENT_CONFIG_VERSION = "1.0.0"


def get_default_config_path() -> str:
    """Resolve the default config.json location inside the user data dir."""
    return os.path.join(get_user_data_dir(), CONFIG_FILE_NAME)


def get_default_config() -> Dict[str, Any]:
    """
    Generate the default runtime configuration.

    Returns:
        Dict[str, Any]: Default configuration values.
    """
    return {
        # Template cache
        "cache_max_size_mb": 50.0,
        "cache_max_entries": 1000,
        "cache_max_age_seconds": 1800.0,
        "cache_cleanup_interval_seconds": 300.0,
        "cache_memory_pressure_threshold_mb": 100.0,
        "cache_aggressive_retain_entries": 100,
        "cache_preload_dependencies": False,

        # Expansion engine
        "max_include_depth": 64,

        # Diagnostics
        "log_level": "INFO",
        "log_file": "",
    }


# -----------------------------------------------------------------------------
# Persistence Logic
# -----------------------------------------------------------------------------
def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from disk, merged over the defaults.

    Args:
        path: Explicit config file. Defaults to the user data directory.

    Returns:
        Dict[str, Any]: The merged configuration, or defaults on failure.
    """
    config_path = path or get_default_config_path()
    defaults = get_default_config()

    if not os.path.exists(config_path):
        logger.debug(f"Config file not found at {config_path}. Returning defaults.")
        return defaults

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to load config: {e}. Using defaults.")
        return defaults

    if not isinstance(data, dict):
        logger.warning("Corrupted config file. Resetting to defaults.")
        return defaults

    data.pop("version", None)
    merged = dict(defaults)
    merged.update(data)
    return merged


def save_config(config: Dict[str, Any], path: Optional[str] = None) -> None:
    """
    Persist configuration to disk.

    Args:
        config: The configuration dictionary to save.
        path: Explicit target file. Defaults to the user data directory.
    """
    config_path = path or get_default_config_path()
    try:
        parent = os.path.dirname(config_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        payload = dict(config)
        payload["version"] = CURRENT_CONFIG_VERSION
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=4)
        logger.debug(f"Configuration saved to {config_path}")
    except OSError as e:
        logger.error(f"Failed to save configuration: {e}")
