from __future__ import annotations

"""
Template Dependency Tracking.

Extracts static `$include` references from unexpanded templates and keeps a
bidirectional dependency graph (forward edges: template -> files it
includes; reverse edges: file -> templates that include it). The two maps
are each other's transpose at all times and are only mutated through
DependencyGraph methods.
"""

import logging
import re
from collections import deque
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Set

from textui_templates.core.processing.interpolator import has_placeholder
from textui_templates.domain.nodes import INCLUDE_KEY
from textui_templates.infra.fs import resolve_template_path

logger = logging.getLogger(__name__)

# Textual fallback for documents that failed to parse
_TEXT_INCLUDE_RE = re.compile(
    r"\$include:\s*\n\s*template:\s*[\"']?([^\"'\n]+?)[\"']?\s*$",
    re.MULTILINE,
)


# -----------------------------------------------------------------------------
# STATIC EXTRACTION
# -----------------------------------------------------------------------------

def extract_dependencies(parsed_data: Any, template_path: str) -> Set[str]:
    """
    Collect absolute paths referenced by static `$include.template` values.

    The scan covers the whole unexpanded tree, including `$if` and
    `$foreach` bodies. Paths containing '{{ }}' depend on runtime scope and
    are skipped.

    Args:
        parsed_data: Structural parse of the template.
        template_path: Absolute path of the template (resolution base).

    Returns:
        Set[str]: Absolute dependency paths.
    """
    found: Set[str] = set()
    for raw in _iter_include_targets(parsed_data):
        if has_placeholder(raw):
            logger.debug(f"Skipping dynamic include '{raw}' in {template_path}")
            continue
        found.add(resolve_template_path(raw, template_path))
    return found


def extract_dependencies_from_text(content: str, template_path: str) -> Set[str]:
    """Best-effort line scan used when the template could not be parsed."""
    found: Set[str] = set()
    for match in _TEXT_INCLUDE_RE.finditer(content):
        raw = match.group(1).strip()
        if raw and not has_placeholder(raw):
            found.add(resolve_template_path(raw, template_path))
    return found


def _iter_include_targets(data: Any) -> Iterable[str]:
    stack: List[Any] = [data]
    while stack:
        current = stack.pop()
        if isinstance(current, Mapping):
            body = current.get(INCLUDE_KEY)
            if isinstance(body, Mapping):
                target = body.get("template")
                if isinstance(target, str) and target.strip():
                    yield target.strip()
            stack.extend(current.values())
        elif isinstance(current, list):
            stack.extend(current)


# -----------------------------------------------------------------------------
# DEPENDENCY GRAPH
# -----------------------------------------------------------------------------

class DependencyGraph:
    """
    Forward and reverse include edges between absolute template paths.

    A node exists while it has outgoing edges (it is loaded and includes
    something) or incoming edges (some loaded template includes it). A node
    with only incoming edges is a placeholder for a file that has not been
    loaded yet, so a later load of that file knows who depends on it.
    """

    def __init__(self) -> None:
        self._forward: Dict[str, Set[str]] = {}
        self._reverse: Dict[str, Set[str]] = {}

    # --- mutation -------------------------------------------------------------

    def set_dependencies(self, path: str, dependencies: Iterable[str]) -> None:
        """
        Replace the outgoing edges of path.

        Incoming edges (dependents) are preserved. Targets that are not yet
        known become placeholder nodes.
        """
        new_deps = set(dependencies)
        old_deps = self._forward.get(path, set())

        for dep in old_deps - new_deps:
            self._unlink(path, dep)

        for dep in new_deps - old_deps:
            self._reverse.setdefault(dep, set()).add(path)

        if new_deps:
            self._forward[path] = new_deps
        else:
            self._forward.pop(path, None)
        self._reverse.setdefault(path, set())
        self._prune(path)

    def remove_node(self, path: str) -> None:
        """
        Drop the outgoing edges of a removed template.

        The node survives as a placeholder while other templates still list
        it as a dependency, so the transpose invariant holds.
        """
        for dep in self._forward.pop(path, set()):
            self._unlink(path, dep)
        self._prune(path)

    def clear(self) -> None:
        self._forward.clear()
        self._reverse.clear()

    def _unlink(self, source: str, target: str) -> None:
        dependents = self._reverse.get(target)
        if dependents is not None:
            dependents.discard(source)
            self._prune(target)

    def _prune(self, path: str) -> None:
        if not self._forward.get(path) and not self._reverse.get(path):
            self._forward.pop(path, None)
            self._reverse.pop(path, None)

    # --- queries --------------------------------------------------------------

    def dependencies_of(self, path: str) -> FrozenSet[str]:
        return frozenset(self._forward.get(path, ()))

    def dependents_of(self, path: str) -> FrozenSet[str]:
        return frozenset(self._reverse.get(path, ()))

    def has_node(self, path: str) -> bool:
        return path in self._forward or path in self._reverse

    def nodes(self) -> Set[str]:
        return set(self._forward) | set(self._reverse)

    def transitive_dependents(self, path: str) -> List[str]:
        """
        Every template that includes path directly or indirectly.

        Breadth-first, cycle-safe, excludes path itself.

        Returns:
            List[str]: Dependents in discovery order.
        """
        visited: Set[str] = {path}
        ordered: List[str] = []
        queue = deque([path])
        while queue:
            current = queue.popleft()
            for dependent in sorted(self._reverse.get(current, ())):
                if dependent not in visited:
                    visited.add(dependent)
                    ordered.append(dependent)
                    queue.append(dependent)
        return ordered

    def is_consistent(self) -> bool:
        """Check that forward and reverse maps are exact transposes."""
        for source, targets in self._forward.items():
            for target in targets:
                if source not in self._reverse.get(target, ()):
                    return False
        for target, sources in self._reverse.items():
            for source in sources:
                if target not in self._forward.get(source, ()):
                    return False
        return True
