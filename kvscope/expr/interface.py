"""Evaluator interface - ABC for expression language backends."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any

from kvscope.completion.registry import FunctionMetadata

_QUOTED_KEY_RE = re.compile(r'\[\s*"(?:[^"\\]|\\.)*"\s*\]')
_INDEX_RE = re.compile(r"\[\s*\d+\s*\]")
_OPERATOR_RE = re.compile(r"==|!=|<=|>=|&&|\|\||[<>+*/%!?,(){}]|\s-|-\s")
_LITERAL_RE = re.compile(r"-?\d+(\.\d+)?([eE][-+]?\d+)?|true|false|null")
_WORD_OPERATOR_RE = re.compile(r"(^|\s)(and|or|not|in)(\s|$)")


def has_free_form_syntax(text: str) -> bool:
    """Whether ``text`` uses expression syntax beyond a plain path.

    Literals (including list literals such as ``[1][0]``), calls, operators
    and comprehension keywords count. Dots, numeric indices and quoted-key
    brackets after a path head do not.
    """
    source = text.strip()
    if not source:
        return False
    if source[0] in "\"'{[" or _LITERAL_RE.fullmatch(source):
        return True
    stripped = _QUOTED_KEY_RE.sub("[k]", source)
    stripped = _INDEX_RE.sub("[0]", stripped)
    if _OPERATOR_RE.search(stripped):
        return True
    return bool(_WORD_OPERATOR_RE.search(stripped))


class ExpressionEvaluator(ABC):
    """Abstract base class for expression evaluators."""

    name: str = "base"

    @abstractmethod
    def evaluate(self, expression: str, root: Any) -> Any:
        """Evaluate ``expression`` with ``_`` bound to ``root``.

        Raises:
            EvaluationError: on syntax, type or runtime failure.
        """

    @abstractmethod
    def discover_function_metadata(self) -> list[FunctionMetadata]:
        """Describe the functions this backend supports."""

    def is_free_form_syntax(self, text: str) -> bool:
        return has_free_form_syntax(text)


def create_evaluator(backend: str = "simpleeval") -> ExpressionEvaluator:
    """Factory for expression evaluators."""
    if backend == "simpleeval":
        from .simple_backend import SimpleEvalBackend
        return SimpleEvalBackend()
    raise ValueError(f"Unknown evaluator backend: {backend}")
