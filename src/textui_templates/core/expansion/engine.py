from __future__ import annotations

"""
Template Expansion Engine.

Entry point for collaborators that need the expanded form of a document:
1. Structurally parses the source text (YAML).
2. Compiles it into the document node tree.
3. Walks the tree depth-first in document order, delegating directive nodes
   to the DirectiveEvaluator and splicing their results into the parent.
4. Substitutes '{{ }}' placeholders in every string leaf against the scope
   visible at that position.

Each top-level call carries its own in-progress stack, so independent calls
may interleave on the event loop without tripping each other's cycle
detection. The only shared state is the injected TemplateCacheService.
Any TemplateException aborts the whole call; no partial result is returned.
"""

import logging
import os
from typing import Any, Dict, List, Mapping, Optional, Set

from textui_templates.core.expansion.context import ExpansionContext
from textui_templates.core.expansion.directives import DirectiveEvaluator, Splice
from textui_templates.core.processing.interpolator import resolve_value, substitute
from textui_templates.core.services.cache import TemplateCacheService
from textui_templates.core.services.dependency_tracker import extract_dependencies
from textui_templates.core.services.loader import file_exists, parse_document
from textui_templates.domain.errors import TemplateParseError
from textui_templates.domain.nodes import (
    ForEachDirective,
    IfDirective,
    IncludeDirective,
    MappingNode,
    Node,
    ScalarNode,
    SequenceNode,
    compile_document,
    is_directive,
)
from textui_templates.infra.fs import read_text_with_mtime, resolve_template_path

logger = logging.getLogger(__name__)

DEFAULT_MAX_INCLUDE_DEPTH = 64


class TemplateParser:
    """
    Recursive-descent expander for `$include`, `$if` and `$foreach`.

    Args:
        cache: Shared template cache. A private one is created when omitted.
        max_include_depth: Maximum include nesting before the expansion is
            rejected as circular.
    """

    def __init__(
            self,
            cache: Optional[TemplateCacheService] = None,
            *,
            max_include_depth: int = DEFAULT_MAX_INCLUDE_DEPTH,
    ) -> None:
        self._cache = cache if cache is not None else TemplateCacheService()
        self._max_include_depth = max_include_depth
        self._directives = DirectiveEvaluator(self, self._cache, max_include_depth)

    @property
    def cache(self) -> TemplateCacheService:
        return self._cache

    # -------------------------------------------------------------------------
    # PUBLIC API
    # -------------------------------------------------------------------------

    async def parse_with_templates(
            self,
            text: str,
            base_path: str,
            params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """
        Expand every directive in a document.

        Args:
            text: Source document text.
            base_path: Path of the document; relative includes resolve
                against its directory and it seeds the in-progress stack.
            params: Optional top-level parameter bindings.

        Returns:
            Any: The expanded document as plain data.

        Raises:
            TemplateException: Any expansion failure (file not found,
            circular reference, syntax error, parse error).
        """
        source_path = os.path.abspath(base_path)
        data = parse_document(text, source_path)
        return await self._expand_document(data, source_path, params)

    async def parse_file(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """
        Read a document through the cache and expand it.

        Raises:
            TemplateFileNotFoundError: When the document cannot be read.
            TemplateException: Any expansion failure.
        """
        source_path = os.path.abspath(path)
        entry = await self._cache.get_template(source_path)
        if not entry.is_parsed:
            raise TemplateParseError(source_path, entry.parse_error or "")
        return await self._expand_document(entry.parsed_data, source_path, params)

    def detect_circular_references(self, text: str, base_path: str) -> List[str]:
        """
        Report include cycles reachable from a document without expanding it.

        Follows static `$include` targets through the files on disk.
        Unreadable or unparseable files and dynamic paths are skipped.
        Never raises.

        Args:
            text: Source document text.
            base_path: Path of the document.

        Returns:
            List[str]: Absolute paths at which a cycle closes, each once, in
            discovery order.
        """
        source_path = os.path.abspath(base_path)
        try:
            root_deps = extract_dependencies(parse_document(text, source_path), source_path)
        except TemplateParseError:
            return []

        found: List[str] = []
        finished: Set[str] = set()
        deps_by_file: Dict[str, Set[str]] = {source_path: root_deps}

        def _deps(path: str) -> Set[str]:
            if path not in deps_by_file:
                deps_by_file[path] = _read_static_dependencies(path)
            return deps_by_file[path]

        def _visit(path: str, stack: List[str]) -> None:
            for dep in sorted(_deps(path)):
                if dep in stack:
                    if dep not in found:
                        logger.debug(f"Cycle detected: {' -> '.join(stack + [dep])}")
                        found.append(dep)
                    continue
                if dep in finished:
                    continue
                _visit(dep, stack + [dep])
            finished.add(path)

        try:
            _visit(source_path, [source_path])
        except RecursionError:
            logger.warning(f"Include graph too deep to pre-check: {source_path}")
        return found

    async def validate_template_path(self, template_path: str, base_path: str) -> bool:
        """Check that an include target resolves to a readable file."""
        if not template_path or not template_path.strip():
            return False
        return await file_exists(resolve_template_path(template_path, base_path))

    # -------------------------------------------------------------------------
    # TREE WALK
    # -------------------------------------------------------------------------

    async def _expand_document(
            self,
            data: Any,
            source_path: str,
            params: Optional[Mapping[str, Any]],
    ) -> Any:
        root = compile_document(data, source_path)
        ctx = ExpansionContext.root(source_path, params)
        logger.debug(f"Expanding {source_path}")
        return await self.expand_value(root, ctx)

    async def expand_splice(self, node: Node, ctx: ExpansionContext) -> Splice:
        """
        Expand a node into the values it contributes to a parent sequence.

        Directives contribute their splice; a sequence contributes its
        expanded items; any other node contributes exactly one value.
        """
        if isinstance(node, IncludeDirective):
            return await self._directives.evaluate_include(node, ctx)
        if isinstance(node, IfDirective):
            return await self._directives.evaluate_if(node, ctx)
        if isinstance(node, ForEachDirective):
            return await self._directives.evaluate_foreach(node, ctx)
        if isinstance(node, SequenceNode):
            return Splice(items=tuple(await self._expand_sequence(node, ctx)), sequence=True)
        return Splice(items=(await self.expand_value(node, ctx),), sequence=False)

    async def expand_value(self, node: Node, ctx: ExpansionContext) -> Any:
        """Expand a node that occupies exactly one position."""
        if is_directive(node):
            splice = await self.expand_splice(node, ctx)
            return splice.as_value()
        if isinstance(node, SequenceNode):
            return await self._expand_sequence(node, ctx)
        if isinstance(node, MappingNode):
            result: Dict[Any, Any] = {}
            for key, child in node.entries:
                if isinstance(key, str):
                    key = substitute(key, ctx.scope)
                result[key] = await self.expand_value(child, ctx)
            return result
        if isinstance(node, ScalarNode):
            if isinstance(node.value, str):
                return resolve_value(node.value, ctx.scope)
            return node.value
        raise TypeError(f"Unknown node type: {type(node).__name__}")

    async def _expand_sequence(self, node: SequenceNode, ctx: ExpansionContext) -> List[Any]:
        items: List[Any] = []
        for child in node.items:
            if is_directive(child):
                splice = await self.expand_splice(child, ctx)
                items.extend(splice.items)
            else:
                items.append(await self.expand_value(child, ctx))
        return items


def _read_static_dependencies(path: str) -> Set[str]:
    try:
        content, _ = read_text_with_mtime(path)
        return extract_dependencies(parse_document(content, path), path)
    except (OSError, UnicodeDecodeError, TemplateParseError) as e:
        logger.debug(f"Skipping unreadable include during cycle pre-check: {path}: {e}")
        return set()
