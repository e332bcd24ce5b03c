"""Expression gateway: routes input to path navigation or the evaluator."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from kvscope.errors import EvaluationError, MalformedPathError, NotFoundError
from kvscope.nav.navigator import resolve
from kvscope.nav.path_model import ROOT_ALIAS, Path, parse_path
from kvscope.nodes import is_composite, type_tag

from .interface import ExpressionEvaluator, create_evaluator, has_free_form_syntax

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExprState:
    """What the expression bar last evaluated."""
    raw_input: str = ""
    is_free_form: bool = False
    result_type: str = ""


@dataclass
class EvalOutcome:
    """Result of evaluating user input; failures carry ``error`` instead of raising."""
    success: bool
    raw_input: str
    node: Any = None
    result_type: str = ""
    path: Path | None = None
    is_free_form: bool = False
    error: str | None = None

    @property
    def expr_state(self) -> ExprState:
        return ExprState(self.raw_input, self.is_free_form, self.result_type)


def auto_prefix(token: str) -> str:
    """Prefix a bare path token with the root alias.

    Literals and free-form expressions are returned unchanged.
    """
    text = token.strip()
    if not text or text == ROOT_ALIAS or text.startswith((ROOT_ALIAS + ".", ROOT_ALIAS + "[")):
        return text
    if text[0] in "[\"'{(" or text[0].isdigit():
        return text
    if has_free_form_syntax(text):
        return text
    try:
        parse_path(text)
    except MalformedPathError:
        return text
    return f"{ROOT_ALIAS}.{text.lstrip('.')}"


def _path_shaped(text: str) -> Path | None:
    """Path for expressions like ``(_.items[ 0 ])``; None if not path-shaped."""
    candidate = text.strip()
    while candidate.startswith("(") and candidate.endswith(")"):
        candidate = candidate[1:-1].strip()
    if not candidate.startswith(ROOT_ALIAS):
        return None
    candidate = "".join(candidate.split()) if '"' not in candidate else candidate
    try:
        return parse_path(candidate)
    except MalformedPathError:
        return None


class ExpressionGateway:
    """Classifies and evaluates expression-bar input against a root."""

    def __init__(self, evaluator: ExpressionEvaluator | None = None):
        self.evaluator = evaluator or create_evaluator()

    def is_free_form(self, text: str) -> bool:
        return self.evaluator.is_free_form_syntax(text)

    def evaluate(self, raw: str, root: Any) -> EvalOutcome:
        text = raw.strip()
        if not text:
            return EvalOutcome(False, raw, error="empty expression")

        if not self.is_free_form(text):
            try:
                path = parse_path(text)
                node = resolve(root, path)
            except (MalformedPathError, NotFoundError) as exc:
                return EvalOutcome(False, raw, error=str(exc))
            return EvalOutcome(True, raw, node, type_tag(node), path, False)

        try:
            value = self.evaluator.evaluate(text, root)
        except EvaluationError as exc:
            logger.debug("expression %r failed: %s", text, exc)
            return EvalOutcome(False, raw, is_free_form=True, error=str(exc))
        return EvalOutcome(True, raw, value, type_tag(value), self._stable_path(text, root, value), True)

    def _stable_path(self, text: str, root: Any, value: Any) -> Path | None:
        path = _path_shaped(text)
        if path is None:
            return None
        try:
            resolved = resolve(root, path)
        except NotFoundError:
            return None
        if resolved is value or (not is_composite(value) and resolved == value):
            return path
        return None

    def infer_type(self, expression: str, root: Any) -> str:
        """Type tag of ``expression`` evaluated against ``root``; "" on failure."""
        outcome = self.evaluate(expression, root)
        return outcome.result_type if outcome.success else ""
