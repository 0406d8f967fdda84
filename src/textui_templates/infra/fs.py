from __future__ import annotations

"""
FileSystem Infrastructure Layer.

Provides path resolution for template references, user data directory
discovery, and blocking file primitives. The async document loader wraps the
blocking primitives; the synchronous cycle pre-check calls them directly.
"""

import os
from typing import Optional, Tuple

# -----------------------------------------------------------------------------
# GLOBAL CONSTANTS
# -----------------------------------------------------------------------------

APP_DIR_NAME = "TextUITemplates"
UNIX_APP_DIR_NAME = ".textui_templates"

# -----------------------------------------------------------------------------
# PATH RESOLUTION API
# -----------------------------------------------------------------------------

def get_user_data_dir() -> str:
    """
    Resolve the standard OS-specific directory for persistent application data.

    Automatically creates the hierarchy if it does not exist.
    Standards:
    - Windows: %LOCALAPPDATA%/TextUITemplates
    - Linux/Mac: ~/.textui_templates

    Returns:
        str: Absolute path to the application data directory.
    """
    path: str = ""

    if os.name == "nt":
        base = os.environ.get("LOCALAPPDATA") or os.environ.get("APPDATA")
        if base:
            path = os.path.join(base, APP_DIR_NAME)

    if not path:
        path = os.path.join(os.path.expanduser("~"), UNIX_APP_DIR_NAME)

    try:
        os.makedirs(path, exist_ok=True)
    except OSError:
        pass

    return os.path.abspath(path)


def normalize_path(path: Optional[str], fallback: str) -> str:
    """
    Normalize a path string into an absolute filesystem path.

    Handles environment variable expansion ($VAR/%VAR%) and user home
    shortcuts (~/). Reverts to fallback if the input is empty.

    Args:
        path: Raw input path string.
        fallback: Default path to use if the input is empty.

    Returns:
        str: Normalized absolute path.
    """
    p = (path or "").strip()
    if not p:
        p = fallback
    p = os.path.expandvars(os.path.expanduser(p))
    return os.path.abspath(p)


def resolve_template_path(template_path: str, base_path: str) -> str:
    """
    Resolve an `$include` target against the including file.

    Absolute targets are normalized as-is; relative targets are resolved
    against the directory containing base_path.

    Args:
        template_path: Path as written in the directive.
        base_path: Path of the including file.

    Returns:
        str: Absolute, normalized path.
    """
    target = os.path.expanduser(template_path.strip())
    if os.path.isabs(target):
        return os.path.normpath(target)
    base_dir = os.path.dirname(os.path.abspath(base_path))
    return os.path.normpath(os.path.join(base_dir, target))


# -----------------------------------------------------------------------------
# BLOCKING FILE PRIMITIVES
# -----------------------------------------------------------------------------

def is_readable_file(path: str) -> bool:
    """Check that path exists, is a regular file and is readable."""
    return os.path.isfile(path) and os.access(path, os.R_OK)


def stat_mtime_ns(path: str) -> int:
    """
    Read the modification time of a file in nanoseconds.

    Raises:
        OSError: When the file cannot be stat'ed.
    """
    return os.stat(path).st_mtime_ns


def read_text_with_mtime(path: str) -> Tuple[str, int]:
    """
    Snapshot the mtime, then read the file as UTF-8 text.

    The mtime is taken first: if the file changes between the two calls the
    stored snapshot is older than the content, and the next freshness check
    simply reloads it.

    Raises:
        OSError: When the file cannot be read.
        UnicodeDecodeError: When the file is not valid UTF-8.
    """
    mtime = stat_mtime_ns(path)
    with open(path, "r", encoding="utf-8") as f:
        content = f.read()
    return content, mtime
