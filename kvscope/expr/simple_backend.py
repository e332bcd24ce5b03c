"""Expression backend built on simpleeval.

Evaluates a CEL-flavoured dialect: ``_`` is the root, fields are selected
with ``.name`` or ``["name"]``, functions are called as methods
(``_.items.size()``) or globals (``math.abs(x)``), and ``&&``/``||``/``!``
are accepted alongside ``and``/``or``/``not``.
"""

from __future__ import annotations

import ast
import logging
import re
from typing import Any, Callable

from simpleeval import EvalWithCompoundTypes, InvalidExpression

from kvscope.completion.registry import FunctionMetadata
from kvscope.errors import EvaluationError
from kvscope.nav.path_model import ROOT_ALIAS
from kvscope.nodes import type_tag

from .functions import CATALOG, GLOBAL_MACROS, GLOBALS, MACROS, METHODS
from .interface import ExpressionEvaluator

logger = logging.getLogger(__name__)

CONSTANTS = {"true": True, "false": False, "null": None}


def translate_operators(expression: str) -> str:
    """Rewrite ``&&``, ``||`` and prefix ``!`` outside string literals."""
    out: list[str] = []
    quote: str | None = None
    i = 0
    n = len(expression)
    while i < n:
        ch = expression[i]
        if quote:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(expression[i + 1])
                i += 2
                continue
            if ch == quote:
                quote = None
            i += 1
            continue
        if ch in "\"'":
            quote = ch
            out.append(ch)
        elif expression.startswith("&&", i):
            out.append(" and ")
            i += 1
        elif expression.startswith("||", i):
            out.append(" or ")
            i += 1
        elif ch == "!" and not expression.startswith("!=", i):
            out.append(" not ")
        else:
            out.append(ch)
        i += 1
    return "".join(out).strip()


def _dotted_name(node: ast.AST) -> str | None:
    """``math.abs`` for ``Attribute(Name('math'), 'abs')``; None for other shapes."""
    parts: list[str] = []
    while isinstance(node, ast.Attribute):
        parts.append(node.attr)
        node = node.value
    if not isinstance(node, ast.Name):
        return None
    parts.append(node.id)
    return ".".join(reversed(parts))


class _DialectEval(EvalWithCompoundTypes):
    """simpleeval evaluator with dialect-specific names, fields and calls."""

    def __init__(
        self,
        names: dict[str, Any],
        methods: dict[str, Callable[..., Any]],
        globals_: dict[str, Callable[..., Any]],
    ):
        super().__init__(functions={}, names=names)
        self.methods = methods
        self.globals = globals_

    def _child(self, extra: dict[str, Any]) -> "_DialectEval":
        child = self.__class__({**self.names, **extra}, self.methods, self.globals)
        child.expr = self.expr
        return child

    def _eval_name(self, node):
        try:
            return self.names[node.id]
        except KeyError:
            raise EvaluationError(f"undeclared reference to '{node.id}'", self.expr) from None

    def _eval_attribute(self, node):
        receiver = self._eval(node.value)
        if isinstance(receiver, dict):
            if node.attr in receiver:
                return receiver[node.attr]
            raise EvaluationError(f"no such key: '{node.attr}'", self.expr)
        raise EvaluationError(
            f"cannot select field '{node.attr}' on {type_tag(receiver)}", self.expr
        )

    def _eval_call(self, node):
        if node.keywords:
            raise EvaluationError("keyword arguments are not supported", self.expr)
        func = node.func
        dotted = _dotted_name(func)
        if dotted in GLOBAL_MACROS:
            return self._call_has(node.args)
        if dotted in self.globals and dotted.split(".", 1)[0] not in self.names:
            args = [self._eval(arg) for arg in node.args]
            return self._invoke(dotted, self.globals[dotted], args)
        if isinstance(func, ast.Attribute):
            if func.attr in MACROS:
                return self._call_macro(func.attr, func.value, node.args)
            if func.attr in self.methods:
                receiver = self._eval(func.value)
                args = [self._eval(arg) for arg in node.args]
                return self._invoke(func.attr, self.methods[func.attr], [receiver, *args])
        raise EvaluationError(f"undeclared reference to function '{dotted or ast.dump(func)}'", self.expr)

    def _invoke(self, name: str, fn: Callable[..., Any], args: list[Any]) -> Any:
        try:
            return fn(*args)
        except EvaluationError as exc:
            if not exc.expression:
                exc.expression = self.expr
            raise
        except TypeError as exc:
            raise EvaluationError(f"bad arguments to {name}(): {exc}", self.expr) from exc

    def _call_macro(self, name: str, receiver_node: ast.AST, args: list[ast.AST]) -> Any:
        if len(args) != 2 or not isinstance(args[0], ast.Name):
            raise EvaluationError(f"{name}() expects a variable name and an expression", self.expr)
        receiver = self._eval(receiver_node)
        var = args[0].id
        body = args[1]

        def predicate(item: Any) -> Any:
            return self._child({var: item})._eval(body)

        return self._invoke(name, MACROS[name], [receiver, predicate])

    def _call_has(self, args: list[ast.AST]) -> bool:
        if len(args) != 1:
            raise EvaluationError("has() expects exactly one argument", self.expr)
        try:
            self._eval(args[0])
        except (EvaluationError, KeyError, IndexError, TypeError):
            return False
        return True


class SimpleEvalBackend(ExpressionEvaluator):
    """Default evaluator: simpleeval with the dialect's function tables."""

    name = "simpleeval"

    def __init__(
        self,
        methods: dict[str, Callable[..., Any]] | None = None,
        globals_: dict[str, Callable[..., Any]] | None = None,
        catalog: tuple[FunctionMetadata, ...] | None = None,
    ):
        self.methods = dict(METHODS if methods is None else methods)
        self.globals = dict(GLOBALS if globals_ is None else globals_)
        self.catalog = tuple(CATALOG if catalog is None else catalog)

    def evaluate(self, expression: str, root: Any) -> Any:
        source = translate_operators(expression)
        if not source:
            raise EvaluationError("empty expression", expression)
        names = {ROOT_ALIAS: root, **CONSTANTS}
        evaluator = _DialectEval(names, self.methods, self.globals)
        try:
            return evaluator.eval(source)
        except EvaluationError as exc:
            exc.expression = expression
            raise
        except SyntaxError as exc:
            raise EvaluationError(f"syntax error: {exc.msg}", expression) from exc
        except InvalidExpression as exc:
            raise EvaluationError(str(exc), expression) from exc
        except (TypeError, ValueError, KeyError, IndexError, ZeroDivisionError, OverflowError, re.error) as exc:
            logger.debug("evaluation of %r failed: %r", expression, exc)
            raise EvaluationError(f"{type(exc).__name__}: {exc}", expression) from exc

    def discover_function_metadata(self) -> list[FunctionMetadata]:
        return list(self.catalog)
