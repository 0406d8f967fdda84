from __future__ import annotations

"""
Logging Configuration Models.

Settings for the logging subsystem, built either directly or from the
validated application configuration dictionary ('log_level', 'log_file').
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

_LEVEL_MAP: Dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


@dataclass(frozen=True)
class LoggingConfig:
    """
    Immutable settings for the logging subsystem initialization.

    Attributes:
        level: Minimum severity level name.
        console: Emit records on stderr.
        log_file: Optional path of a rotating log file.
        max_bytes: Segment size before rotation.
        backup_count: Rotated segments kept on disk.
        console_fmt: Format for stderr records.
        file_fmt: Format for file records.
        datefmt: Timestamp format for file records.
    """
    level: str = "INFO"
    console: bool = True
    log_file: Optional[str] = None

    max_bytes: int = 2 * 1024 * 1024
    backup_count: int = 3

    console_fmt: str = "%(levelname)s | %(name)s | %(message)s"
    file_fmt: str = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    datefmt: str = "%Y-%m-%d %H:%M:%S"

    @classmethod
    def from_app_config(cls, cfg: Dict[str, Any], *, console: bool = True) -> LoggingConfig:
        """
        Build logging settings from a validated application configuration.

        An empty 'log_file' disables file output.
        """
        return cls(
            level=str(cfg.get("log_level") or "INFO"),
            console=console,
            log_file=cfg.get("log_file") or None,
        )

    @property
    def level_int(self) -> int:
        """Numeric level; unknown names fall back to INFO."""
        if not self.level:
            return logging.INFO
        return _LEVEL_MAP.get(str(self.level).strip().upper(), logging.INFO)
