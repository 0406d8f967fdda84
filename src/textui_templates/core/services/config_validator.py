from __future__ import annotations

"""
Configuration Validation Service.

Gatekeeper between untrusted configuration sources (JSON file, CLI) and the
template engine. Coerces types, enforces positive limits and fills missing
keys with domain defaults so the cache and engine always receive a complete,
typed dictionary.
"""

import logging
from typing import Any, Dict, List, Tuple

from textui_templates.domain.config import get_default_config

logger = logging.getLogger(__name__)

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


# -----------------------------------------------------------------------------
# PUBLIC API
# -----------------------------------------------------------------------------

def validate_config(
        config: Any,
        *,
        strict: bool = False,
) -> Tuple[Dict[str, Any], List[str]]:
    """
    Validate and normalize a configuration dictionary.

    Args:
        config: Raw configuration data (usually a dictionary).
        strict: If True, raises exceptions on invalid values instead of
                coercing or falling back.

    Returns:
        Tuple[Dict[str, Any], List[str]]: The normalized configuration and a
                                          list of warnings.

    Raises:
        TypeError: In strict mode, when a value has the wrong type.
        ValueError: In strict mode, when a value is out of range.
    """
    warnings: List[str] = []
    defaults = get_default_config()

    if not isinstance(config, dict):
        msg = f"Invalid config type: expected dict, received {type(config).__name__}."
        if strict:
            raise TypeError(msg)
        warnings.append(f"{msg} Using defaults.")
        logger.warning(msg)
        return defaults, warnings

    merged: Dict[str, Any] = dict(defaults)
    merged.update(config)

    int_fields = ["cache_max_entries", "cache_aggressive_retain_entries", "max_include_depth"]

    float_fields = [
        "cache_max_size_mb", "cache_max_age_seconds",
        "cache_cleanup_interval_seconds", "cache_memory_pressure_threshold_mb",
    ]

    bool_fields = ["cache_preload_dependencies"]

    for field in int_fields:
        merged[field] = _as_positive_int(
            merged.get(field), defaults[field], field, warnings, strict
        )

    for field in float_fields:
        merged[field] = _as_positive_float(
            merged.get(field), defaults[field], field, warnings, strict
        )

    for field in bool_fields:
        merged[field] = _as_bool(
            merged.get(field), defaults[field], field, warnings, strict
        )

    merged["log_level"] = _as_log_level(merged.get("log_level"), warnings, strict)
    merged["log_file"] = _as_str(merged.get("log_file"), "", "log_file", warnings, strict)

    if merged["cache_aggressive_retain_entries"] > merged["cache_max_entries"]:
        msg = "Field 'cache_aggressive_retain_entries' exceeds 'cache_max_entries'."
        if strict:
            raise ValueError(msg)
        warnings.append(f"{msg} Clamped.")
        merged["cache_aggressive_retain_entries"] = merged["cache_max_entries"]

    for w in warnings:
        logger.debug(f"Config validation: {w}")

    return merged, warnings


# -----------------------------------------------------------------------------
# PRIVATE HELPERS: TYPE COERCION
# -----------------------------------------------------------------------------

def _as_str(value: Any, fallback: str, field: str, warnings: List[str], strict: bool) -> str:
    """Validate and sanitize string inputs."""
    if value is None:
        return fallback
    if isinstance(value, str):
        return value.strip()

    msg = f"Invalid field '{field}': expected str, received {type(value).__name__}."
    if strict:
        raise TypeError(msg)
    warnings.append(f"{msg} Using fallback.")
    return fallback


def _as_bool(value: Any, fallback: bool, field: str, warnings: List[str], strict: bool) -> bool:
    """Coerce various input types into native booleans."""
    if isinstance(value, bool):
        return value
    if value is None:
        return fallback

    if not strict:
        if isinstance(value, (int, float)) and value in (0, 1):
            warnings.append(f"Field '{field}' converted from number {value} to bool.")
            return bool(value)
        if isinstance(value, str):
            s = value.strip().lower()
            if s in ("true", "1", "yes", "y", "on"):
                warnings.append(f"Field '{field}' converted from '{value}' to True.")
                return True
            if s in ("false", "0", "no", "n", "off"):
                warnings.append(f"Field '{field}' converted from '{value}' to False.")
                return False

    msg = f"Invalid field '{field}': expected bool, received {type(value).__name__}."
    if strict:
        raise TypeError(msg)
    warnings.append(f"{msg} Using fallback.")
    return fallback


def _as_positive_int(value: Any, fallback: int, field: str, warnings: List[str], strict: bool) -> int:
    """Coerce to a strictly positive integer."""
    if value is None:
        return fallback

    number: Any = value
    if isinstance(value, bool) or not isinstance(value, int):
        if strict:
            raise TypeError(
                f"Invalid field '{field}': expected int, received {type(value).__name__}."
            )
        try:
            number = int(str(value).strip())
        except ValueError:
            warnings.append(f"Invalid field '{field}': cannot convert {value!r} to int. Using fallback.")
            return fallback
        warnings.append(f"Field '{field}' converted from {value!r} to {number}.")

    if number <= 0:
        msg = f"Invalid field '{field}': must be positive, received {number}."
        if strict:
            raise ValueError(msg)
        warnings.append(f"{msg} Using fallback.")
        return fallback
    return number


def _as_positive_float(value: Any, fallback: float, field: str, warnings: List[str], strict: bool) -> float:
    """Coerce to a strictly positive float; ints are accepted silently."""
    if value is None:
        return fallback

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        if strict:
            raise TypeError(
                f"Invalid field '{field}': expected number, received {type(value).__name__}."
            )
        try:
            number = float(str(value).strip())
        except ValueError:
            warnings.append(f"Invalid field '{field}': cannot convert {value!r} to number. Using fallback.")
            return fallback
        warnings.append(f"Field '{field}' converted from {value!r} to {number}.")
    else:
        number = float(value)

    if number <= 0:
        msg = f"Invalid field '{field}': must be positive, received {number}."
        if strict:
            raise ValueError(msg)
        warnings.append(f"{msg} Using fallback.")
        return fallback
    return number


def _as_log_level(value: Any, warnings: List[str], strict: bool) -> str:
    if value is None:
        return "INFO"
    if isinstance(value, str) and value.strip().upper() in _VALID_LOG_LEVELS:
        return value.strip().upper()

    msg = f"Invalid field 'log_level': {value!r} is not one of {', '.join(_VALID_LOG_LEVELS)}."
    if strict:
        raise ValueError(msg)
    warnings.append(f"{msg} Using INFO.")
    return "INFO"
