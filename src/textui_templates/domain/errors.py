from __future__ import annotations

"""
Template Error Taxonomy.

Defines the single exception hierarchy raised by the expansion engine and the
template cache. Every failure carries a discriminating kind so callers (the
validation layer, diagnostics, the CLI) can catch uniformly and still branch
on the cause.
"""

from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple


class TemplateErrorKind(str, Enum):
    """Discriminator for every TemplateException."""
    FILE_NOT_FOUND = "TEMPLATE_FILE_NOT_FOUND"
    CIRCULAR_REFERENCE = "CIRCULAR_REFERENCE"
    SYNTAX_ERROR = "TEMPLATE_SYNTAX_ERROR"
    PARSE_ERROR = "TEMPLATE_PARSE_ERROR"


class TemplateException(Exception):
    """
    Base class for all template expansion failures.

    Attributes:
        kind: Error category.
        template_path: File the error is attributed to.
        detail: Human readable explanation.
        line: Optional 1-based line number inside template_path.
        column: Optional 1-based column number inside template_path.
    """

    kind: TemplateErrorKind = TemplateErrorKind.SYNTAX_ERROR

    def __init__(
            self,
            template_path: str,
            detail: str = "",
            *,
            line: Optional[int] = None,
            column: Optional[int] = None,
    ) -> None:
        self.template_path = template_path
        self.detail = detail
        self.line = line
        self.column = column
        message = f"Template error in {template_path}: {self.kind.value}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize the error for diagnostics collaborators.

        Returns:
            Dict[str, Any]: Kind, path, detail and position.
        """
        return {
            "kind": self.kind.value,
            "template_path": self.template_path,
            "detail": self.detail,
            "line": self.line,
            "column": self.column,
        }


class TemplateFileNotFoundError(TemplateException):
    """An $include target or the initial document cannot be read."""
    kind = TemplateErrorKind.FILE_NOT_FOUND


class TemplateSyntaxError(TemplateException):
    """A directive is malformed or an expression is unparseable."""
    kind = TemplateErrorKind.SYNTAX_ERROR


class TemplateParseError(TemplateException):
    """The underlying document failed structural (YAML) parsing."""
    kind = TemplateErrorKind.PARSE_ERROR


class CircularReferenceError(TemplateException):
    """
    The expansion stack revisited a path that is still in progress.

    Attributes:
        chain: Ordered include chain, ending with the path that closed the cycle.
    """
    kind = TemplateErrorKind.CIRCULAR_REFERENCE

    def __init__(self, chain: Sequence[str], detail: str = "") -> None:
        self.chain: Tuple[str, ...] = tuple(chain)
        if not detail:
            detail = " -> ".join(self.chain)
        super().__init__(self.chain[-1] if self.chain else "", detail)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["chain"] = list(self.chain)
        return data
