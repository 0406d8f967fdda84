from __future__ import annotations

"""
Unit tests for the Document Loader (async reads and YAML parsing).
"""

import os
from typing import Callable

import pytest

from textui_templates.core.services.loader import (
    file_exists,
    parse_document,
    read_document,
    stat_mtime,
)
from textui_templates.domain.errors import TemplateParseError


@pytest.mark.asyncio
async def test_read_document_returns_content_and_mtime(write_template: Callable[[str, str], str]) -> None:
    path = write_template("a.yml", "- Text:\n    value: ñ\n")
    doc = await read_document(path)

    assert doc.content == "- Text:\n    value: ñ\n"
    assert doc.last_modified == os.stat(path).st_mtime_ns
    assert doc.size == len(doc.content.encode("utf-8"))
    assert await stat_mtime(path) == doc.last_modified


@pytest.mark.asyncio
async def test_read_missing_document_raises_oserror(tmp_path) -> None:
    with pytest.raises(OSError):
        await read_document(str(tmp_path / "missing.yml"))
    assert await file_exists(str(tmp_path / "missing.yml")) is False


def test_parse_document_yaml() -> None:
    assert parse_document("- a\n- b: 1\n", "/x.yml") == ["a", {"b": 1}]
    assert parse_document("", "/x.yml") is None


def test_parse_document_error_has_position() -> None:
    with pytest.raises(TemplateParseError) as exc:
        parse_document("a: [1, 2\nb: 3\n", "/x.yml")
    err = exc.value
    assert err.template_path == "/x.yml"
    assert err.line is not None and err.line >= 1
    assert err.column is not None
