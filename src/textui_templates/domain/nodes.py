from __future__ import annotations

"""
Document Node Model.

Closed tagged-variant AST for template documents. Raw YAML data (mappings,
sequences, scalars) is compiled once into these frozen nodes so the directive
evaluator can dispatch exhaustively on node type rather than probing for key
presence at runtime.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Tuple, Union

from textui_templates.domain.errors import TemplateSyntaxError
from textui_templates.domain.expressions import Expression, parse_expression

logger = logging.getLogger(__name__)

INCLUDE_KEY = "$include"
IF_KEY = "$if"
FOREACH_KEY = "$foreach"
DIRECTIVE_KEYS = (INCLUDE_KEY, IF_KEY, FOREACH_KEY)

_ALIAS_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# str, int, float, bool, None, or a YAML-native value such as a date
Scalar = Any


# -----------------------------------------------------------------------------
# Plain nodes
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class ScalarNode:
    value: Scalar


@dataclass(frozen=True)
class SequenceNode:
    items: Tuple["Node", ...]


@dataclass(frozen=True)
class MappingNode:
    entries: Tuple[Tuple[Any, "Node"], ...]


# -----------------------------------------------------------------------------
# Directive nodes
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class IncludeDirective:
    """
    `$include` directive.

    Attributes:
        template: Target path, possibly containing '{{ }}' placeholders.
        params: Raw parameter values, evaluated against the includer's scope.
        source_path: Template the directive was declared in.
    """
    template: str
    params: Tuple[Tuple[str, Any], ...]
    source_path: str


@dataclass(frozen=True)
class IfDirective:
    condition: Expression
    template: "Node"
    source_path: str


@dataclass(frozen=True)
class ForEachDirective:
    items: Expression
    alias: str
    template: "Node"
    source_path: str


Directive = Union[IncludeDirective, IfDirective, ForEachDirective]
Node = Union[ScalarNode, SequenceNode, MappingNode, IncludeDirective, IfDirective, ForEachDirective]


def is_directive(node: Node) -> bool:
    return isinstance(node, (IncludeDirective, IfDirective, ForEachDirective))


def is_directive_mapping(data: Any) -> bool:
    """True when raw data is a mapping carrying any directive key."""
    return isinstance(data, Mapping) and any(k in data for k in DIRECTIVE_KEYS)


# -----------------------------------------------------------------------------
# Compiler (raw YAML data -> nodes)
# -----------------------------------------------------------------------------
def compile_document(data: Any, source_path: str) -> Node:
    """
    Compile raw structured data into a document node tree.

    Args:
        data: Output of the structural (YAML) parse.
        source_path: Absolute path the data was read from.

    Returns:
        Node: Root node.

    Raises:
        TemplateSyntaxError: When a directive is malformed.
    """
    if isinstance(data, Mapping):
        if is_directive_mapping(data):
            return _compile_directive(data, source_path)
        entries = []
        for key, value in data.items():
            entries.append((key, compile_document(value, source_path)))
        return MappingNode(tuple(entries))

    if isinstance(data, (list, tuple)):
        return SequenceNode(tuple(compile_document(item, source_path) for item in data))

    # Timestamps and other YAML-native scalars are kept as parsed
    return ScalarNode(data)


def _compile_directive(data: Mapping[str, Any], source_path: str) -> Directive:
    key = next(k for k in DIRECTIVE_KEYS if k in data)
    ignored = [str(k) for k in data.keys() if k != key]
    if ignored:
        logger.debug(f"Ignoring keys beside '{key}' in {source_path}: {', '.join(ignored)}")

    body = data[key]
    if not isinstance(body, Mapping):
        raise TemplateSyntaxError(source_path, f"'{key}' body must be a mapping")

    if key == INCLUDE_KEY:
        return _compile_include(body, source_path)
    if key == IF_KEY:
        return _compile_if(body, source_path)
    return _compile_foreach(body, source_path)


def _compile_include(body: Mapping[str, Any], source_path: str) -> IncludeDirective:
    template = body.get("template")
    if not isinstance(template, str) or not template.strip():
        raise TemplateSyntaxError(source_path, "'$include' requires a 'template' path")

    params = body.get("params")
    if params is None:
        params = {}
    if not isinstance(params, Mapping):
        raise TemplateSyntaxError(source_path, "'$include.params' must be a mapping")

    return IncludeDirective(
        template=template.strip(),
        params=tuple((str(k), v) for k, v in params.items()),
        source_path=source_path,
    )


def _compile_if(body: Mapping[str, Any], source_path: str) -> IfDirective:
    if "condition" not in body:
        raise TemplateSyntaxError(source_path, "'$if' requires a 'condition'")
    if "template" not in body:
        raise TemplateSyntaxError(source_path, "'$if' requires a 'template'")

    return IfDirective(
        condition=parse_expression(body["condition"], "$if.condition", source_path),
        template=compile_document(body["template"], source_path),
        source_path=source_path,
    )


def _compile_foreach(body: Mapping[str, Any], source_path: str) -> ForEachDirective:
    for required in ("items", "as", "template"):
        if required not in body:
            raise TemplateSyntaxError(source_path, f"'$foreach' requires '{required}'")

    alias = body["as"]
    if not isinstance(alias, str) or not _ALIAS_RE.match(alias.strip()):
        raise TemplateSyntaxError(
            source_path, f"'$foreach.as' must be an identifier, got {alias!r}"
        )

    return ForEachDirective(
        items=parse_expression(body["items"], "$foreach.items", source_path),
        alias=alias.strip(),
        template=compile_document(body["template"], source_path),
        source_path=source_path,
    )

