"""Explorer: the event-loop-facing façade over the navigation core.

Every user action returns a :class:`StatusResult`; path, lookup and
evaluation failures are reported there and leave the state untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from kvscope.completion import CompletionEngine, FunctionRegistry, Suggestion
from kvscope.config import ExplorerConfig
from kvscope.decode import DecodeEngine, DecodeState, decode_value
from kvscope.errors import KvscopeError, NotFoundError
from kvscope.expr import EvalOutcome, ExpressionEvaluator, ExpressionGateway, ExprState, auto_prefix, create_evaluator
from kvscope.nav import NavigationState, Navigator, Path, child_segment, segment_label
from kvscope.nodes import children, is_composite, stringify, type_tag
from kvscope.search import DebounceGate, Hit, SearchContext, SearchResults, deep_search, type_ahead_filter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusResult:
    ok: bool
    message: str = ""

    @classmethod
    def success(cls, message: str = "") -> "StatusResult":
        return cls(True, message)

    @classmethod
    def failure(cls, message: str) -> "StatusResult":
        return cls(False, message)


@dataclass(frozen=True)
class Row:
    """One line of the current node's child listing."""
    label: str
    type_tag: str
    preview: str
    key: str | int


class Explorer:
    """Owns the tree and all view state for one exploration session."""

    def __init__(
        self,
        root: Any,
        config: ExplorerConfig | None = None,
        evaluator: ExpressionEvaluator | None = None,
    ):
        self.config = config or ExplorerConfig()
        self.config.validate()
        self.decode_engine = DecodeEngine(self.config.allow_decode, self.config.max_decode_depth)
        if self.config.auto_decode == "eager":
            root = self.decode_engine.decode_all(root)
        self.search = SearchContext()
        self.navigator = Navigator(root, self.decode_engine, self.search)
        self.gateway = ExpressionGateway(evaluator or create_evaluator(self.config.evaluator_backend))
        self.registry = FunctionRegistry()
        self.registry.load_from_evaluator(self.gateway.evaluator)
        if self.config.function_examples:
            self.registry.apply_overrides(self.config.function_examples)
        self.completion = CompletionEngine(
            self.registry,
            type_hook=self._infer,
            sort_order=self.config.sort_order,
            limit=self.config.completion_limit,
        )
        self.debounce = DebounceGate(self.config.search_debounce_ms)
        self.expr_state = ExprState(result_type=type_tag(root))
        self._history: list[NavigationState] = []

    # -- state -------------------------------------------------------------

    @property
    def root(self) -> Any:
        return self.navigator.root

    @property
    def path(self) -> Path | None:
        return self.navigator.path

    @property
    def node(self) -> Any:
        return self.navigator.node

    @property
    def path_text(self) -> str:
        """Canonical path, or the raw expression for computed results."""
        if self.path is None:
            return self.expr_state.raw_input
        return str(self.path)

    @property
    def decode_state(self) -> DecodeState:
        return self.decode_engine.state

    @property
    def decode_badge(self) -> str:
        state = self.decode_state
        if not state.active or state.decode_point is None:
            return ""
        return f"decoded @ {state.decode_point}"

    @property
    def decode_hint(self) -> bool:
        """Whether the decode action would expand the current node."""
        return self.decode_engine.hint(self.node)

    @property
    def history_depth(self) -> int:
        return len(self._history)

    def rows(self) -> list[Row]:
        out = []
        for key, child in children(self.node, self.config.sort_order):
            label = segment_label(child_segment(key))
            preview = f"{len(child)} item(s)" if is_composite(child) else stringify(child)
            out.append(Row(label, type_tag(child), preview, key))
        return out

    def _remember(self) -> None:
        self._history.append(self.navigator.state)

    def _settle(self, raw: str = "", free_form: bool = False) -> None:
        self.expr_state = ExprState(raw, free_form, type_tag(self.node))

    # -- navigation --------------------------------------------------------

    def evaluate(self, raw: str) -> EvalOutcome:
        """Evaluate expression-bar input without changing the view."""
        return self.gateway.evaluate(auto_prefix(raw), self.root)

    def goto(self, raw: str) -> StatusResult:
        """Evaluate expression-bar input and move the view to the result."""
        outcome = self.evaluate(raw)
        if not outcome.success:
            return StatusResult.failure(outcome.error or "evaluation failed")
        self._remember()
        self.navigator.navigate_to(outcome.node, outcome.path)
        self.expr_state = outcome.expr_state
        if outcome.path is not None:
            self._auto_decode()
        return StatusResult.success()

    def drill(self, key: str | int) -> StatusResult:
        if self.path is None:
            return StatusResult.failure("computed result has no path to drill into")
        try:
            previous = self.navigator.state
            self.navigator.drill(child_segment(key))
        except NotFoundError as exc:
            return StatusResult.failure(str(exc))
        self._history.append(previous)
        self._settle()
        self._auto_decode()
        return StatusResult.success()

    def back(self) -> StatusResult:
        if self.search.can_restore(self.path):
            results = self.search.restore()
            self.navigator.navigate_path(results.base_path, preserve_search=True)
            self._settle()
            return StatusResult.success(f"{len(results)} hit(s) for {results.query!r}")
        if self.path is None:
            if not self._history:
                return StatusResult.failure("no previous view")
            state = self._history.pop()
            self.navigator.navigate_to(state.node, state.path)
            self._settle()
            return StatusResult.success()
        if self.path.is_root:
            return StatusResult.success()
        try:
            self.navigator.navigate_back(free_form=False)
        except NotFoundError as exc:
            return StatusResult.failure(str(exc))
        self._settle()
        return StatusResult.success()

    # -- decoding ----------------------------------------------------------

    def decode(self) -> StatusResult:
        """Decode the current string scalar in place; silent when not decodable."""
        if not self.config.allow_decode:
            return StatusResult.success()
        if self.path is None:
            decoded = decode_value(self.node)
            if decoded is not None:
                self.navigator.navigate_to(decoded.value, None, preserve_search=True)
                self._settle(self.expr_state.raw_input, True)
            return StatusResult.success()
        new_root = self.decode_engine.decode_at(self.root, self.path)
        if self.decode_engine.last_decoded is None:
            return StatusResult.success()
        self.navigator.replace_root(new_root)
        self._settle()
        return StatusResult.success(f"decoded {self.decode_engine.last_decoded.kind.value}")

    def _auto_decode(self) -> None:
        if self.config.auto_decode == "lazy" and self.path is not None and self.decode_hint:
            self.decode()

    # -- completion --------------------------------------------------------

    def _infer(self, expression: str) -> tuple[Any, str] | None:
        outcome = self.evaluate(expression)
        if not outcome.success:
            return None
        return outcome.node, outcome.result_type

    def suggestions(self, partial: str) -> list[Suggestion]:
        return self.completion.complete(partial, self.node, self.expr_state.result_type)

    def apply_suggestion(self, partial: str, suggestion: Suggestion) -> str:
        return self.completion.apply(partial, suggestion)

    # -- search ------------------------------------------------------------

    def _deep_search(self, query: str) -> SearchResults:
        return deep_search(
            self.node, query, self.path, self.config.sort_order, self.config.search_result_limit
        )

    def preview_search(self, query: str) -> SearchResults | None:
        """Deep search below the current path without committing it.

        Used while the query is still being typed; None for computed results.
        """
        if self.path is None:
            return None
        return self._deep_search(query)

    def run_search(self, query: str) -> StatusResult:
        """Commit a deep search below the current path."""
        if self.path is None:
            return StatusResult.failure("cannot search a computed result")
        results = self._deep_search(query)
        self.search.commit(results)
        message = f"{len(results)} hit(s) for {query!r}"
        if results.limited:
            message += " (limited)"
        return StatusResult.success(message)

    def open_hit(self, hit: Hit | int) -> StatusResult:
        if isinstance(hit, int):
            try:
                hit = self.search.hits[hit]
            except IndexError:
                return StatusResult.failure(f"no search hit #{hit}")
        previous = self.navigator.state
        path = self.search.drill(hit)
        try:
            self.navigator.navigate_path(path, preserve_search=True)
        except KvscopeError as exc:
            return StatusResult.failure(str(exc))
        self._history.append(previous)
        self._settle()
        self._auto_decode()
        return StatusResult.success()

    def accept(self) -> StatusResult:
        self.search.accept()
        return StatusResult.success()

    def filter_keys(self, prefix: str) -> list[str]:
        self.search.set_filter(prefix)
        return type_ahead_filter(self.node, prefix, self.config.sort_order)
