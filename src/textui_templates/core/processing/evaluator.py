from __future__ import annotations

"""
Expression evaluation for `$if` and `$foreach`.
"""

import logging
from typing import Any, List

from textui_templates.core.processing.interpolator import resolve_data, resolve_value
from textui_templates.domain.expressions import (
    ArrayLiteral,
    Expression,
    Interpolated,
    Literal,
    ParamRef,
    is_truthy,
)
from textui_templates.domain.scope import MISSING, ParameterScope

logger = logging.getLogger(__name__)


def evaluate_expression(expr: Expression, scope: ParameterScope) -> Any:
    """
    Evaluate a parsed expression against a scope.

    Unresolved parameter references evaluate to None.
    """
    if isinstance(expr, ParamRef):
        value = scope.lookup(expr.path)
        return None if value is MISSING else value
    if isinstance(expr, Literal):
        return expr.value
    if isinstance(expr, ArrayLiteral):
        return resolve_data(list(expr.items), scope)
    if isinstance(expr, Interpolated):
        return resolve_value(expr.template, scope)
    raise TypeError(f"Unknown expression node: {type(expr).__name__}")


def evaluate_condition(expr: Expression, scope: ParameterScope) -> bool:
    """Evaluate a `$if.condition` to a boolean (best-effort truthiness)."""
    return is_truthy(evaluate_expression(expr, scope))


def evaluate_items(expr: Expression, scope: ParameterScope) -> List[Any]:
    """
    Evaluate `$foreach.items` to a list.

    An interpolated expression that produces a string is retried as a
    parameter path ('{{ "key" }}' style indirection). Any non-list result
    coerces to an empty list.
    """
    value = evaluate_expression(expr, scope)

    if isinstance(expr, Interpolated) and isinstance(value, str):
        indirect = scope.lookup(value)
        value = None if indirect is MISSING else indirect

    if isinstance(value, (list, tuple)):
        return list(value)

    if value is not None:
        logger.debug(
            f"$foreach items {expr.raw!r} resolved to {type(value).__name__}; iterating nothing"
        )
    return []
