from __future__ import annotations

"""
Unit tests for the document node compiler.

Verifies:
1. Plain data compiles into Scalar/Sequence/Mapping nodes.
2. Directive mappings compile into typed directive nodes.
3. Malformed directives raise TemplateSyntaxError naming the source file.
"""

import datetime

import pytest

from textui_templates.domain.errors import TemplateErrorKind, TemplateSyntaxError
from textui_templates.domain.expressions import ArrayLiteral, Literal, ParamRef
from textui_templates.domain.nodes import (
    ForEachDirective,
    IfDirective,
    IncludeDirective,
    MappingNode,
    ScalarNode,
    SequenceNode,
    compile_document,
    is_directive,
)

SRC = "/tmp/main.yml"


def test_plain_data_compiles_structurally() -> None:
    node = compile_document({"Text": {"value": "hi", "size": 3}, "tags": ["a", None]}, SRC)

    assert isinstance(node, MappingNode)
    entries = dict(node.entries)
    assert isinstance(entries["Text"], MappingNode)
    assert entries["tags"] == SequenceNode((ScalarNode("a"), ScalarNode(None)))


def test_native_scalars_are_kept() -> None:
    """Dates and other YAML-native values are not stringified."""
    day = datetime.date(2024, 1, 2)
    assert compile_document(day, SRC) == ScalarNode(day)


def test_include_directive() -> None:
    node = compile_document(
        {"$include": {"template": " parts/header.yml ", "params": {"title": "Hi"}}}, SRC
    )
    assert isinstance(node, IncludeDirective)
    assert node.template == "parts/header.yml"
    assert node.params == (("title", "Hi"),)
    assert node.source_path == SRC
    assert is_directive(node)


def test_include_without_params() -> None:
    node = compile_document({"$include": {"template": "a.yml"}}, SRC)
    assert isinstance(node, IncludeDirective)
    assert node.params == ()


def test_if_directive() -> None:
    node = compile_document({"$if": {"condition": "$params.show", "template": [{"Divider": {}}]}}, SRC)
    assert isinstance(node, IfDirective)
    assert node.condition == ParamRef("show", raw="$params.show")
    assert isinstance(node.template, SequenceNode)


def test_foreach_directive() -> None:
    node = compile_document(
        {"$foreach": {"items": [1, 2], "as": "n", "template": {"Text": {"value": "{{ n }}"}}}}, SRC
    )
    assert isinstance(node, ForEachDirective)
    assert node.alias == "n"
    assert isinstance(node.items, ArrayLiteral)
    assert isinstance(node.template, MappingNode)


def test_nested_directives_compile() -> None:
    """Directives inside sequences and directive bodies are compiled too."""
    node = compile_document(
        [{"$if": {"condition": True, "template": [{"$include": {"template": "x.yml"}}]}}], SRC
    )
    assert isinstance(node, SequenceNode)
    inner = node.items[0]
    assert isinstance(inner, IfDirective)
    assert inner.condition == Literal(True, raw="True")
    assert isinstance(inner.template.items[0], IncludeDirective)


def test_keys_beside_directive_are_ignored() -> None:
    node = compile_document({"$include": {"template": "a.yml"}, "id": "extra"}, SRC)
    assert isinstance(node, IncludeDirective)
    assert node.template == "a.yml"

    both = compile_document(
        {
            "$foreach": {"items": [], "as": "x", "template": []},
            "$if": {"condition": True, "template": []},
        },
        SRC,
    )
    assert isinstance(both, IfDirective)


def test_unknown_dollar_keys_pass_through() -> None:
    node = compile_document({"$schema": "x", "$other": {"a": 1}}, SRC)
    assert isinstance(node, MappingNode)


@pytest.mark.parametrize(
    "data",
    [
        {"$include": {"params": {}}},
        {"$include": {"template": "  "}},
        {"$include": {"template": "a.yml", "params": ["x"]}},
        {"$include": "a.yml"},
        {"$if": {"template": []}},
        {"$if": {"condition": "true"}},
        {"$foreach": {"as": "x", "template": []}},
        {"$foreach": {"items": [], "template": []}},
        {"$foreach": {"items": [], "as": "x"}},
        {"$foreach": {"items": [], "as": "not valid", "template": []}},
    ],
)
def test_malformed_directives_raise(data: dict) -> None:
    """Each malformed shape is a TemplateSyntaxError attributed to the source."""
    with pytest.raises(TemplateSyntaxError) as exc:
        compile_document([data], SRC)
    assert exc.value.kind is TemplateErrorKind.SYNTAX_ERROR
    assert exc.value.template_path == SRC
