"""Error taxonomy for kvscope.

Low-level helpers raise these; the Explorer turns them into status results so
nothing reaches the event loop as an exception.
"""

from __future__ import annotations

from typing import Any


class KvscopeError(Exception):
    """Base class for all kvscope errors."""


class MalformedPathError(KvscopeError, ValueError):
    """Raised when a textual address cannot be parsed."""

    def __init__(self, message: str, text: str = "", position: int | None = None):
        super().__init__(message)
        self.text = text
        self.position = position


class NotFoundError(KvscopeError, LookupError):
    """Raised when a path segment does not resolve against the tree."""

    def __init__(self, message: str, segment: Any = None, prefix: Any = None):
        super().__init__(message)
        self.segment = segment
        self.prefix = prefix


class EvaluationError(KvscopeError):
    """Raised when the expression evaluator rejects an expression."""

    def __init__(self, message: str, expression: str = ""):
        super().__init__(message)
        self.expression = expression


class ConfigError(KvscopeError, ValueError):
    """Raised when kvscope.toml cannot be read."""


class LoaderError(KvscopeError):
    """Raised when a document cannot be parsed into a tree."""
