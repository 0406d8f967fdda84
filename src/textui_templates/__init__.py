from __future__ import annotations

"""
TextUI template expansion engine.

Public entry points for host applications: build one TemplateService (or a
TemplateCacheService shared by several TemplateParser instances) and call
parse_with_templates.
"""

from textui_templates.core.expansion.engine import TemplateParser
from textui_templates.core.services.cache import TemplateCacheService
from textui_templates.core.services.template_service import TemplateService
from textui_templates.domain.cache_models import CacheConfig, CacheStats
from textui_templates.domain.errors import (
    CircularReferenceError,
    TemplateErrorKind,
    TemplateException,
    TemplateFileNotFoundError,
    TemplateParseError,
    TemplateSyntaxError,
)

__version__ = "0.1.0"

__all__ = [
    "CacheConfig",
    "CacheStats",
    "CircularReferenceError",
    "TemplateCacheService",
    "TemplateErrorKind",
    "TemplateException",
    "TemplateFileNotFoundError",
    "TemplateParseError",
    "TemplateParser",
    "TemplateService",
    "TemplateSyntaxError",
]
