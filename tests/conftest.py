from __future__ import annotations

"""
Global Pytest Configuration and Fixtures.

This module sets up the testing environment, including:
1. Path manipulation to ensure the 'src' directory is importable.
2. A template workspace fixture that writes YAML files into tmp_path.
3. Helpers to force a distinct mtime after rewriting a file.
"""

import os
import sys
import textwrap
from pathlib import Path
from typing import Any, Callable, Dict

import pytest

# -----------------------------------------------------------------------------
# Path Configuration
# -----------------------------------------------------------------------------
_SRC_PATH = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if _SRC_PATH not in sys.path:
    sys.path.insert(0, _SRC_PATH)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def bump_mtime(path: str, seconds: int = 5) -> None:
    """Move a file's mtime forward so mtime-based freshness checks see a change."""
    st = os.stat(path)
    new_ns = st.st_mtime_ns + seconds * 1_000_000_000
    os.utime(path, ns=(new_ns, new_ns))


# -----------------------------------------------------------------------------
# Shared Fixtures
# -----------------------------------------------------------------------------
@pytest.fixture
def write_template(tmp_path: Path) -> Callable[[str, str], str]:
    """
    Return a writer that creates dedented template files under tmp_path.

    Returns:
        Callable[[str, str], str]: write(name, content) -> absolute path.
    """
    def _write(name: str, content: str) -> str:
        target = tmp_path / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
        return str(target)

    return _write


@pytest.fixture
def rewrite_template(write_template: Callable[[str, str], str]) -> Callable[[str, str], str]:
    """Return a writer that overwrites a template and guarantees a new mtime."""
    def _rewrite(name: str, content: str) -> str:
        path = write_template(name, content)
        bump_mtime(path)
        return path

    return _rewrite


@pytest.fixture
def mock_config_dict() -> Dict[str, Any]:
    """
    Return a valid, complete configuration dictionary for testing.

    Mirrors 'textui_templates.domain.config.get_default_config' with small
    cache limits so eviction paths are easy to reach.
    """
    return {
        "cache_max_size_mb": 1.0,
        "cache_max_entries": 10,
        "cache_max_age_seconds": 60.0,
        "cache_cleanup_interval_seconds": 30.0,
        "cache_memory_pressure_threshold_mb": 4096.0,
        "cache_aggressive_retain_entries": 2,
        "cache_preload_dependencies": False,
        "max_include_depth": 16,
        "log_level": "INFO",
        "log_file": "",
    }
