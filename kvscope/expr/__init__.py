"""Expression evaluation: backends and the gateway in front of them."""

from .gateway import EvalOutcome, ExpressionGateway, ExprState, auto_prefix
from .interface import ExpressionEvaluator, create_evaluator, has_free_form_syntax
from .simple_backend import SimpleEvalBackend, translate_operators

__all__ = [
    "EvalOutcome",
    "ExprState",
    "ExpressionEvaluator",
    "ExpressionGateway",
    "SimpleEvalBackend",
    "auto_prefix",
    "create_evaluator",
    "has_free_form_syntax",
    "translate_operators",
]
