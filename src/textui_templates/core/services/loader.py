from __future__ import annotations

"""
Document Loader.

Async file access for the template cache plus the structural (YAML) parse.
Blocking filesystem calls run in worker threads via asyncio.to_thread so an
expansion suspends at each read and other queued work can proceed.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import yaml

from textui_templates.domain.errors import TemplateParseError
from textui_templates.infra.fs import is_readable_file, read_text_with_mtime, stat_mtime_ns

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadedDocument:
    """Raw text of a file plus the mtime snapshot taken when it was read."""
    path: str
    content: str
    last_modified: int

    @property
    def size(self) -> int:
        return len(self.content.encode("utf-8"))


async def read_document(path: str) -> LoadedDocument:
    """
    Read a document from disk.

    Args:
        path: Absolute file path.

    Returns:
        LoadedDocument: Content and mtime.

    Raises:
        OSError: When the file cannot be stat'ed or read.
        UnicodeDecodeError: When the file is not UTF-8.
    """
    content, mtime = await asyncio.to_thread(read_text_with_mtime, path)
    return LoadedDocument(path=path, content=content, last_modified=mtime)


async def stat_mtime(path: str) -> int:
    """Return the file's mtime in nanoseconds (raises OSError)."""
    return await asyncio.to_thread(stat_mtime_ns, path)


async def file_exists(path: str) -> bool:
    return await asyncio.to_thread(is_readable_file, path)


def parse_document(content: str, source_path: str) -> Any:
    """
    Structurally parse document text.

    Args:
        content: YAML (or JSON) text.
        source_path: Path used for error attribution.

    Returns:
        Any: Parsed mappings, sequences and scalars; None for an empty document.

    Raises:
        TemplateParseError: When the text is not valid YAML.
    """
    try:
        return yaml.safe_load(content)
    except yaml.YAMLError as e:
        line = column = None
        mark = getattr(e, "problem_mark", None)
        if mark is not None:
            line, column = mark.line + 1, mark.column + 1
        problem = getattr(e, "problem", None) or str(e)
        logger.debug(f"YAML parse error in {source_path}: {problem}")
        raise TemplateParseError(source_path, str(problem), line=line, column=column) from e
