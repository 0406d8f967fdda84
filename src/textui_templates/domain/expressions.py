from __future__ import annotations

"""
Directive Expression Model.

Closed expression grammar used by `$if.condition` and `$foreach.items`.
Expressions are parsed once into a small typed AST and evaluated against a
ParameterScope, instead of being probed with string heuristics at runtime.

Supported forms:
- YAML literals: booleans, numbers, null, sequences.
- '$params.<path>' or a bare dotted identifier: parameter reference.
- 'true' / 'false', integers, decimals, quoted strings: literals.
- '[a, b, ...]': flow array literal.
- Any string containing '{{ }}': interpolated expression.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Tuple, Union

import yaml

from textui_templates.domain.errors import TemplateSyntaxError
from textui_templates.domain.scope import PARAMS_PREFIX

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Lexical patterns
# -----------------------------------------------------------------------------
_IDENTIFIER_PATH_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_\-]*(\.[A-Za-z0-9_\-]+)*$")
_INTEGER_RE = re.compile(r"^-?\d+$")
_DECIMAL_RE = re.compile(r"^-?\d+\.\d+$")
_PLACEHOLDER_MARK_RE = re.compile(r"\{\{.*?\}\}", re.DOTALL)


# -----------------------------------------------------------------------------
# Expression AST
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class ParamRef:
    """Reference to a bound parameter by dotted path (without '$params.')."""
    path: str
    raw: str = ""


@dataclass(frozen=True)
class Literal:
    """Constant value. Unsupported string forms become Literal(None)."""
    value: Any
    raw: str = ""


@dataclass(frozen=True)
class ArrayLiteral:
    """Inline sequence of raw values; string leaves are interpolated on use."""
    items: Tuple[Any, ...]
    raw: str = ""


@dataclass(frozen=True)
class Interpolated:
    """String holding one or more '{{ }}' placeholders."""
    template: str
    raw: str = ""


Expression = Union[ParamRef, Literal, ArrayLiteral, Interpolated]


# -----------------------------------------------------------------------------
# Parser
# -----------------------------------------------------------------------------
def parse_expression(raw: Any, field: str, source_path: str) -> Expression:
    """
    Parse a directive field into a typed expression.

    Args:
        raw: Value as it appears in the YAML document.
        field: Directive field name, used in error messages.
        source_path: Template the expression belongs to.

    Returns:
        Expression: The parsed expression node.

    Raises:
        TemplateSyntaxError: When a flow array literal cannot be parsed.
    """
    if isinstance(raw, bool) or raw is None or isinstance(raw, (int, float)):
        return Literal(raw, raw=str(raw))
    if isinstance(raw, list):
        return ArrayLiteral(tuple(raw), raw=repr(raw))
    if isinstance(raw, Mapping):
        return Literal(dict(raw), raw=repr(raw))
    if not isinstance(raw, str):
        return Literal(raw, raw=repr(raw))

    text = raw.strip()

    if _PLACEHOLDER_MARK_RE.search(text):
        return Interpolated(text, raw=raw)

    if text.startswith(PARAMS_PREFIX):
        path = text[len(PARAMS_PREFIX):]
        if not _IDENTIFIER_PATH_RE.match(path):
            logger.debug(f"Unsupported parameter reference in '{field}' of {source_path}: {raw!r}")
            return Literal(None, raw=raw)
        return ParamRef(path, raw=raw)

    if text == "true":
        return Literal(True, raw=raw)
    if text == "false":
        return Literal(False, raw=raw)
    if _INTEGER_RE.match(text):
        return Literal(int(text), raw=raw)
    if _DECIMAL_RE.match(text):
        return Literal(float(text), raw=raw)

    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return Literal(text[1:-1], raw=raw)

    if text.startswith("[") and text.endswith("]"):
        return ArrayLiteral(_parse_flow_array(text, field, source_path), raw=raw)

    if _IDENTIFIER_PATH_RE.match(text):
        return ParamRef(text, raw=raw)

    logger.debug(f"Unsupported expression in '{field}' of {source_path}: {raw!r}")
    return Literal(None, raw=raw)


def _parse_flow_array(text: str, field: str, source_path: str) -> Tuple[Any, ...]:
    """Parse '[...]' with the YAML flow-sequence grammar."""
    try:
        value = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise TemplateSyntaxError(
            source_path, f"malformed array literal in '{field}': {e}"
        ) from e
    if not isinstance(value, list):
        raise TemplateSyntaxError(source_path, f"malformed array literal in '{field}'")
    return tuple(value)


# -----------------------------------------------------------------------------
# Truthiness
# -----------------------------------------------------------------------------
def is_truthy(value: Any) -> bool:
    """
    Best-effort truthiness shared by `$if` conditions.

    Strings are true when non-empty and not 'false' (any case); numbers when
    non-zero; sequences when non-empty; mappings always; None never.
    """
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, str):
        return len(value) > 0 and value.lower() != "false"
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, (list, tuple)):
        return len(value) > 0
    return True
