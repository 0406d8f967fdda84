from __future__ import annotations

"""
Parameter Scope Model.

A layered, immutable name -> value environment. Each directive evaluation
builds a new scope on top of the enclosing one; nothing is ever mutated in
place, so sibling branches of the expansion walk cannot observe each other's
bindings.
"""

from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

PARAMS_PREFIX = "$params."


class _Missing:
    """Sentinel type for unresolved lookups."""

    _instance: Optional["_Missing"] = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


def strip_params_prefix(path: str) -> str:
    """Remove the canonical '$params.' prefix from a dotted path."""
    p = path.strip()
    if p.startswith(PARAMS_PREFIX):
        return p[len(PARAMS_PREFIX):]
    return p


def get_nested_value(data: Any, path: str) -> Any:
    """
    Walk a dotted path through nested mappings and sequences.

    Integer segments index into lists. Any dead end yields MISSING.

    Args:
        data: Root value.
        path: Dotted path such as 'item.tags.0'.

    Returns:
        Any: The resolved value or MISSING.
    """
    current = data
    for segment in path.split("."):
        if isinstance(current, Mapping):
            if segment not in current:
                return MISSING
            current = current[segment]
        elif isinstance(current, list):
            try:
                index = int(segment)
            except ValueError:
                return MISSING
            if index < -len(current) or index >= len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


class ParameterScope:
    """
    Immutable layered parameter environment.

    Lookups search the innermost layer first, then fall back to the parent
    chain. The first segment of a dotted path selects the binding; the rest
    walks into the bound value.
    """

    __slots__ = ("_bindings", "_parent")

    def __init__(
            self,
            bindings: Optional[Mapping[str, Any]] = None,
            parent: Optional[ParameterScope] = None,
    ) -> None:
        self._bindings: Dict[str, Any] = dict(bindings or {})
        self._parent = parent

    @property
    def parent(self) -> Optional[ParameterScope]:
        return self._parent

    def child(self, bindings: Mapping[str, Any]) -> ParameterScope:
        """
        Create a new scope layered over this one.

        Args:
            bindings: Names introduced by the new layer.

        Returns:
            ParameterScope: The extended scope; self is left untouched.
        """
        return ParameterScope(bindings, parent=self)

    def _find_binding(self, name: str) -> Any:
        scope: Optional[ParameterScope] = self
        while scope is not None:
            if name in scope._bindings:
                return scope._bindings[name]
            scope = scope._parent
        return MISSING

    def lookup(self, path: str) -> Any:
        """
        Resolve a dotted parameter path, optionally prefixed with '$params.'.

        Args:
            path: Expression such as '$params.title' or 'item.name'.

        Returns:
            Any: The bound value or MISSING when the path does not resolve.
        """
        cleaned = strip_params_prefix(path)
        if not cleaned:
            return MISSING
        head, _, rest = cleaned.partition(".")
        value = self._find_binding(head)
        if value is MISSING or not rest:
            return value
        return get_nested_value(value, rest)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._find_binding(name) is not MISSING

    def layers(self) -> Iterator[Mapping[str, Any]]:
        """Yield binding layers from innermost to outermost."""
        scope: Optional[ParameterScope] = self
        while scope is not None:
            yield scope._bindings
            scope = scope._parent

    def to_dict(self) -> Dict[str, Any]:
        """Flatten the visible bindings (inner layers win)."""
        merged: Dict[str, Any] = {}
        stack: List[Mapping[str, Any]] = list(self.layers())
        for layer in reversed(stack):
            merged.update(layer)
        return merged

    def items(self) -> List[Tuple[str, Any]]:
        return sorted(self.to_dict().items())

    def __repr__(self) -> str:
        return f"ParameterScope({self.to_dict()!r})"
