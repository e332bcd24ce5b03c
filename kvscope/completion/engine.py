"""Context-aware completion for the expression bar.

Suggestions are keys, indices and functions, chosen from the shape of the
partial input (trailing dot, partial token, open bracket) and filtered by
the type the expression so far evaluates to.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from kvscope.nav.path_model import Index, Key, format_segment, needs_quoting, segment_label
from kvscope.nodes import NodeKind, SortOrder, kind_of, ordered_keys, type_tag

from .registry import FunctionMetadata, FunctionRegistry

logger = logging.getLogger(__name__)

_IDENT_TAIL = re.compile(r"[A-Za-z0-9_]*$")

# Maps an expression to (node, type_tag), or None when it does not evaluate.
TypeHook = Callable[[str], Optional[tuple[Any, str]]]


class SuggestionKind(str, Enum):
    KEY = "key"
    INDEX = "index"
    FUNCTION = "function"


class InputMode(str, Enum):
    NONE = "none"
    DOT = "dot"
    PARTIAL = "partial"
    BRACKET = "bracket"


@dataclass(frozen=True)
class Suggestion:
    kind: SuggestionKind
    label: str
    key: str | int | None = None
    function: FunctionMetadata | None = None

    @property
    def is_function(self) -> bool:
        return self.kind is SuggestionKind.FUNCTION

    @property
    def help_text(self) -> str:
        """One-line help: signature, description and the first example."""
        fn = self.function
        if fn is None:
            return self.label
        parts = [fn.signature or fn.name]
        if fn.description:
            parts.append(fn.description)
        if fn.examples:
            parts.append(f"e.g. {fn.examples[0]}")
        return " - ".join(parts)


@dataclass(frozen=True)
class CompletionContext:
    current_node: Any = None
    current_type: str = ""
    expression_result_type: str = ""
    is_after_dot: bool = False
    partial_token: str = ""

    @property
    def effective_type(self) -> str:
        """Evaluated expression type wins over the raw node type."""
        return self.expression_result_type or self.current_type

    @classmethod
    def for_node(cls, node: Any, expression_result_type: str = "", **kwargs) -> "CompletionContext":
        return cls(node, type_tag(node), expression_result_type, **kwargs)


@dataclass(frozen=True)
class InputShape:
    """Where completion applies inside the raw input.

    ``base`` is the expression left of the completion point and ``prefix``
    the text kept verbatim when a suggestion is applied.
    """
    mode: InputMode
    base: str = ""
    token: str = ""
    prefix: str = ""
    is_after_dot: bool = False


def analyze_input(text: str) -> InputShape:
    quote: str | None = None
    bracket_start: int | None = None
    i = 0
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == "\\":
                i += 1
            elif ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch == "[":
            bracket_start = i
        elif ch == "]":
            bracket_start = None
        i += 1

    if bracket_start is not None:
        inner = text[bracket_start + 1:]
        before = text[:bracket_start]
        if inner == "" or inner.isdigit() or inner.startswith('"'):
            return InputShape(InputMode.BRACKET, before, inner.strip('"'), before)
        return InputShape(InputMode.NONE)
    if quote:
        return InputShape(InputMode.NONE)
    if text.endswith("."):
        base = text[:-1]
        return InputShape(InputMode.DOT, base, "", base, True)
    match = _IDENT_TAIL.search(text)
    token = match.group()
    if not token:
        return InputShape(InputMode.NONE)
    start = match.start()
    if start > 0 and text[start - 1] == ".":
        base = text[: start - 1]
        return InputShape(InputMode.PARTIAL, base, token, base, True)
    return InputShape(InputMode.PARTIAL, "", token, text[:start], False)


def insert_text(fn: FunctionMetadata) -> str:
    """``.name(`` for methods, ``name(`` for globals."""
    return f".{fn.name}(" if fn.is_method else f"{fn.name}("


def _trailing_ident(text: str) -> str:
    return _IDENT_TAIL.search(text).group()


class CompletionEngine:
    """Produces ordered suggestions for partial expression input."""

    def __init__(
        self,
        registry: FunctionRegistry,
        type_hook: TypeHook | None = None,
        sort_order: SortOrder | str = SortOrder.ASCENDING,
        limit: int = 50,
    ):
        self.registry = registry
        self.type_hook = type_hook
        self.sort_order = SortOrder(sort_order)
        self.limit = limit

    def namespaces(self) -> set[str]:
        return {fn.namespace for fn in self.registry.all() if fn.namespace}

    def _namespace_of(self, base: str) -> str:
        """Namespace named by the end of ``base`` (``base64`` in ``_.base64``)."""
        ident = _trailing_ident(base)
        if not ident or ident not in self.namespaces():
            return ""
        head = base[: len(base) - len(ident)]
        return ident if head == "" or head.endswith(".") else ""

    def context_for(self, partial_input: str, current_node: Any, result_type: str = "") -> CompletionContext:
        """Build the context for ``partial_input``.

        The expression left of the completion point is evaluated through the
        type hook; without a hook (or when it fails) the current node is used.
        """
        shape = analyze_input(partial_input)
        node, node_type = current_node, type_tag(current_node)
        expr_type = result_type
        if shape.base and self.type_hook is not None and not self._namespace_of(shape.base):
            inferred = self.type_hook(shape.base)
            if inferred is not None:
                node, expr_type = inferred
                node_type = type_tag(node)
        return CompletionContext(node, node_type, expr_type, shape.is_after_dot, shape.token)

    def suggest(self, partial_input: str, ctx: CompletionContext) -> list[Suggestion]:
        shape = analyze_input(partial_input)
        if shape.mode is InputMode.NONE:
            return []
        if shape.mode is InputMode.BRACKET:
            results = self._bracket_suggestions(shape.token, ctx.current_node)
        else:
            namespace = self._namespace_of(shape.base) if shape.is_after_dot else ""
            if namespace:
                results = [
                    self._function(fn) for fn in self.registry.all()
                    if fn.namespace == namespace and fn.short_name.startswith(shape.token)
                ]
            elif shape.is_after_dot:
                functions = self._function_suggestions(ctx.effective_type, shape.token)
                results = functions + self._key_suggestions(ctx.current_node, shape.token)
            else:
                # A bare token is a key of the current node or the start of a global call.
                functions = self._function_suggestions("", shape.token, methods=False)
                results = self._key_suggestions(ctx.current_node, shape.token) + functions
        if self.limit:
            results = results[: self.limit]
        logger.debug("%d suggestions for %r", len(results), partial_input)
        return results

    def complete(self, partial_input: str, current_node: Any, result_type: str = "") -> list[Suggestion]:
        return self.suggest(partial_input, self.context_for(partial_input, current_node, result_type))

    @staticmethod
    def _function(fn: FunctionMetadata) -> Suggestion:
        return Suggestion(SuggestionKind.FUNCTION, fn.name, function=fn)

    def _function_suggestions(self, type_tag_: str, token: str, methods: bool = True) -> list[Suggestion]:
        out = []
        for fn in self.registry.all():
            if fn.is_method and not methods:
                continue
            if not fn.accepts(type_tag_):
                continue
            if token and not (fn.name.startswith(token) or fn.short_name.startswith(token)):
                continue
            out.append(self._function(fn))
        return out

    def _key_suggestions(self, node: Any, token: str) -> list[Suggestion]:
        kind = kind_of(node)
        out = []
        if kind is NodeKind.MAP:
            for key in ordered_keys(node, self.sort_order):
                name = str(key)
                # Keys that need quoting only complete after "[".
                if needs_quoting(name) or not name.startswith(token):
                    continue
                out.append(Suggestion(SuggestionKind.KEY, name, key=name))
        elif kind is NodeKind.SEQUENCE and not token:
            for index in range(len(node)):
                out.append(Suggestion(SuggestionKind.INDEX, f"[{index}]", key=index))
        return out

    def _bracket_suggestions(self, token: str, node: Any) -> list[Suggestion]:
        kind = kind_of(node)
        out = []
        if kind is NodeKind.SEQUENCE:
            for index in range(len(node)):
                if str(index).startswith(token):
                    out.append(Suggestion(SuggestionKind.INDEX, f"[{index}]", key=index))
        elif kind is NodeKind.MAP:
            for key in ordered_keys(node, self.sort_order):
                name = str(key)
                if needs_quoting(name) and name.startswith(token):
                    out.append(Suggestion(SuggestionKind.KEY, segment_label(Key(name)), key=name))
        return out

    def apply(self, partial_input: str, suggestion: Suggestion) -> str:
        """Return the input with ``suggestion`` inserted at the completion point."""
        shape = analyze_input(partial_input)
        if shape.mode is InputMode.NONE:
            return partial_input

        if suggestion.kind is SuggestionKind.INDEX:
            return shape.prefix + format_segment(Index(int(suggestion.key)))
        if suggestion.kind is SuggestionKind.KEY:
            segment = format_segment(Key(str(suggestion.key)))
            if shape.mode is InputMode.BRACKET or shape.is_after_dot:
                return shape.prefix + segment
            return shape.prefix + segment.lstrip(".")

        fn = suggestion.function
        if shape.is_after_dot and fn.namespace and self._namespace_of(shape.base) == fn.namespace:
            return f"{shape.base}.{fn.short_name}("
        if fn.is_method:
            return shape.prefix + insert_text(fn)
        if shape.is_after_dot and shape.base:
            return insert_text(fn) + shape.base
        return shape.prefix + insert_text(fn)
