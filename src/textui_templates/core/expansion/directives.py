from __future__ import annotations

"""
Directive Evaluator.

Evaluates `$include`, `$if` and `$foreach` nodes. Each evaluation returns a
Splice: the zero or more values that replace the directive in its parent
sequence. Recursion back into the node tree goes through the owning
TemplateParser, which keeps walking and splicing in document order.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, List, Tuple

from textui_templates.core.expansion.context import ExpansionContext
from textui_templates.core.processing.evaluator import evaluate_condition, evaluate_items
from textui_templates.core.processing.interpolator import resolve_data, substitute
from textui_templates.core.services.cache import TemplateCacheService
from textui_templates.domain.errors import TemplateParseError
from textui_templates.domain.nodes import (
    ForEachDirective,
    IfDirective,
    IncludeDirective,
    SequenceNode,
    compile_document,
)
from textui_templates.infra.fs import resolve_template_path

if TYPE_CHECKING:
    from textui_templates.core.expansion.engine import TemplateParser

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Splice:
    """
    Result of evaluating one directive.

    Attributes:
        items: Values spliced into the parent sequence, in order.
        sequence: True when the expansion came from a sequence template, so
            a non-sequence position receives a list rather than one value.
    """
    items: Tuple[Any, ...]
    sequence: bool

    def as_value(self) -> Any:
        """Collapse the splice for a mapping-value or document-root position."""
        if self.sequence:
            return list(self.items)
        if not self.items:
            return None
        if len(self.items) == 1:
            return self.items[0]
        return list(self.items)


EMPTY_SPLICE = Splice(items=(), sequence=False)


class DirectiveEvaluator:
    """
    Evaluates directive nodes for a TemplateParser.

    Args:
        parser: The engine that owns the walk.
        cache: Template cache used to load include targets.
        max_include_depth: Maximum include nesting.
    """

    def __init__(
            self,
            parser: TemplateParser,
            cache: TemplateCacheService,
            max_include_depth: int,
    ) -> None:
        self._parser = parser
        self._cache = cache
        self._max_include_depth = max_include_depth

    async def evaluate_include(self, directive: IncludeDirective, ctx: ExpansionContext) -> Splice:
        """
        Expand the included file with the merged parameter scope.

        The target path and every params value are resolved against the
        includer's scope. The included file sees the includer's bindings
        overlaid by its params.

        Raises:
            CircularReferenceError: When the target is already in progress.
            TemplateFileNotFoundError: When the target cannot be read.
            TemplateParseError: When the target is not valid YAML.
            TemplateSyntaxError: When the target holds a malformed directive.
        """
        raw_path = substitute(directive.template, ctx.scope)
        target = resolve_template_path(raw_path, ctx.current_path)

        params = {name: resolve_data(value, ctx.scope) for name, value in directive.params}
        child_ctx = ctx.enter(target, ctx.scope.child(params), self._max_include_depth)

        logger.debug(f"Including {target} (depth {child_ctx.depth})")
        entry = await self._cache.get_template(target)
        if not entry.is_parsed:
            raise TemplateParseError(target, entry.parse_error or "")
        if entry.parsed_data is None:
            return EMPTY_SPLICE

        root = compile_document(entry.parsed_data, target)
        return await self._parser.expand_splice(root, child_ctx)

    async def evaluate_if(self, directive: IfDirective, ctx: ExpansionContext) -> Splice:
        if evaluate_condition(directive.condition, ctx.scope):
            return await self._parser.expand_splice(directive.template, ctx)
        return Splice(items=(), sequence=isinstance(directive.template, SequenceNode))

    async def evaluate_foreach(self, directive: ForEachDirective, ctx: ExpansionContext) -> Splice:
        """
        Expand the template once per element, sequentially and in order.

        Each iteration extends the enclosing scope with {alias: element}.
        Non-list items yield an empty splice.
        """
        elements = evaluate_items(directive.items, ctx.scope)
        results: List[Any] = []
        for element in elements:
            iteration_ctx = ctx.with_scope(ctx.scope.child({directive.alias: element}))
            splice = await self._parser.expand_splice(directive.template, iteration_ctx)
            results.extend(splice.items)
        return Splice(items=tuple(results), sequence=True)
