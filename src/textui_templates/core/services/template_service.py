from __future__ import annotations

"""
Template Service Facade.

Single object a host application builds once and shares with its
collaborators (validation, preview, export, file watchers). Owns one
TemplateCacheService and one TemplateParser wired to it.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from textui_templates.core.expansion.engine import DEFAULT_MAX_INCLUDE_DEPTH, TemplateParser
from textui_templates.core.services.cache import TemplateCacheService
from textui_templates.core.services.config_validator import validate_config
from textui_templates.domain.cache_models import CacheConfig, CacheStats

logger = logging.getLogger(__name__)


class TemplateService:
    """
    Expansion and cache management entry points for collaborators.

    Args:
        cache: Shared cache. A private one is created when omitted.
        max_include_depth: Maximum include nesting.
    """

    def __init__(
            self,
            cache: Optional[TemplateCacheService] = None,
            *,
            max_include_depth: int = DEFAULT_MAX_INCLUDE_DEPTH,
    ) -> None:
        self._cache = cache if cache is not None else TemplateCacheService()
        self._parser = TemplateParser(self._cache, max_include_depth=max_include_depth)

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> TemplateService:
        """
        Build the service from a raw configuration dictionary.

        The dictionary is validated leniently; warnings are logged.
        """
        clean, warnings = validate_config(config if config is not None else {})
        for w in warnings:
            logger.warning(f"Config: {w}")
        cache = TemplateCacheService(CacheConfig.from_dict(clean))
        return cls(cache, max_include_depth=clean["max_include_depth"])

    @property
    def cache(self) -> TemplateCacheService:
        return self._cache

    @property
    def parser(self) -> TemplateParser:
        return self._parser

    # -------------------------------------------------------------------------
    # EXPANSION
    # -------------------------------------------------------------------------

    async def parse_with_templates(
            self,
            text: str,
            base_path: str,
            params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        return await self._parser.parse_with_templates(text, base_path, params)

    async def parse_file(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self._parser.parse_file(path, params)

    def detect_circular_references(self, text: str, base_path: str) -> List[str]:
        return self._parser.detect_circular_references(text, base_path)

    async def validate_template_path(self, template_path: str, base_path: str) -> bool:
        return await self._parser.validate_template_path(template_path, base_path)

    # -------------------------------------------------------------------------
    # CACHE MANAGEMENT
    # -------------------------------------------------------------------------

    def clear_cache(self) -> None:
        self._cache.clear()

    def invalidate_template_cache(self, path: str) -> int:
        """
        Drop a template and everything that includes it.

        Intended for file watchers reacting to save/delete events.

        Returns:
            int: Number of cache entries removed.
        """
        return self._cache.invalidate_template(path)

    def get_cache_stats(self) -> CacheStats:
        return self._cache.get_stats()

    async def dispose(self) -> None:
        await self._cache.dispose()
