from __future__ import annotations

"""
Variable Substitution Service.

Replaces '{{ expr }}' placeholders inside string leaves with values resolved
from a ParameterScope. Pure functions, no I/O.

Stringification contract:
- A string that is exactly one placeholder resolves to the raw value, type
  preserved (see resolve_value).
- Embedded placeholders are replaced by the value's string form: strings
  verbatim, every other value JSON-encoded with sorted keys.
- Unresolvable placeholders are left as their literal text.
"""

import json
import re
from typing import Any, Mapping

from textui_templates.domain.scope import MISSING, ParameterScope

PLACEHOLDER_RE = re.compile(r"\{\{\s*(.*?)\s*\}\}", re.DOTALL)
_FULL_PLACEHOLDER_RE = re.compile(r"^\{\{\s*((?:(?!\}\}).)*?)\s*\}\}$", re.DOTALL)


# -----------------------------------------------------------------------------
# PUBLIC API
# -----------------------------------------------------------------------------

def has_placeholder(text: str) -> bool:
    return PLACEHOLDER_RE.search(text) is not None


def stringify(value: Any) -> str:
    """
    Render a resolved value for embedding inside a larger string.

    Args:
        value: Resolved parameter value.

    Returns:
        str: Strings unchanged; everything else as compact JSON.
    """
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, ensure_ascii=False, sort_keys=True, separators=(",", ":"))
    except (TypeError, ValueError):
        return str(value)


def substitute(text: str, scope: ParameterScope) -> str:
    """
    Replace every '{{ path }}' span in text.

    Args:
        text: Source string.
        scope: Parameter scope used for lookups.

    Returns:
        str: The substituted string; unresolved spans are kept verbatim.
    """
    if "{{" not in text:
        return text

    def _replace(match: re.Match[str]) -> str:
        value = scope.lookup(match.group(1))
        if value is MISSING:
            return match.group(0)
        return stringify(value)

    return PLACEHOLDER_RE.sub(_replace, text)


def resolve_value(text: str, scope: ParameterScope) -> Any:
    """
    Resolve a string leaf, preserving the type of a lone placeholder.

    '{{ $params.items }}' yields the bound list itself; 'Hi {{ name }}'
    yields a string. A lone placeholder that does not resolve yields the
    original text.

    Args:
        text: Source string.
        scope: Parameter scope used for lookups.

    Returns:
        Any: The raw value or the substituted string.
    """
    if "{{" not in text:
        return text

    full = _FULL_PLACEHOLDER_RE.match(text)
    if full:
        value = scope.lookup(full.group(1))
        return text if value is MISSING else value

    return substitute(text, scope)


def resolve_data(data: Any, scope: ParameterScope) -> Any:
    """
    Apply resolve_value to every string leaf of a plain data structure.

    Mapping keys are substituted as strings. Used for `$include.params`
    values and inline array literals, which are data rather than nodes.
    """
    if isinstance(data, str):
        return resolve_value(data, scope)
    if isinstance(data, Mapping):
        return {substitute(str(k), scope): resolve_data(v, scope) for k, v in data.items()}
    if isinstance(data, (list, tuple)):
        return [resolve_data(item, scope) for item in data]
    return data
