from __future__ import annotations

"""
Expansion context threaded through every recursive expansion step.
"""

from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional, Tuple

from textui_templates.domain.errors import CircularReferenceError
from textui_templates.domain.scope import ParameterScope


@dataclass(frozen=True)
class ExpansionContext:
    """
    State of one position in the expansion walk.

    Attributes:
        scope: Parameter scope visible at this position.
        current_path: Absolute path of the file being expanded (base for
            relative includes).
        stack: Absolute paths currently in progress for this top-level call,
            outermost first. Immutable, so returning from an include pops
            implicitly.
    """
    scope: ParameterScope
    current_path: str
    stack: Tuple[str, ...]

    @classmethod
    def root(cls, path: str, params: Optional[Mapping[str, Any]] = None) -> ExpansionContext:
        """Start a fresh top-level expansion whose stack holds only path."""
        return cls(scope=ParameterScope(params), current_path=path, stack=(path,))

    @property
    def depth(self) -> int:
        """Number of nested includes below the top-level document."""
        return len(self.stack) - 1

    def with_scope(self, scope: ParameterScope) -> ExpansionContext:
        return replace(self, scope=scope)

    def enter(self, path: str, scope: ParameterScope, max_depth: int) -> ExpansionContext:
        """
        Descend into an included file.

        Args:
            path: Absolute path of the include target.
            scope: Scope the target is expanded with.
            max_depth: Maximum include nesting.

        Returns:
            ExpansionContext: Context for the target.

        Raises:
            CircularReferenceError: When path is already in progress or the
            nesting limit is exceeded.
        """
        chain = self.stack + (path,)
        if path in self.stack:
            raise CircularReferenceError(chain)
        if self.depth >= max_depth:
            raise CircularReferenceError(chain, f"maximum include depth {max_depth} exceeded")
        return ExpansionContext(scope=scope, current_path=path, stack=chain)
