"""Interactive search state.

Two query modes share one result model: a type-ahead filter over the keys of
the current map, and a committed deep search below a base path. Drilling into
a deep-search hit saves the search in a one-slot return context so that
backing out of the hit restores the results view.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from kvscope.nav.navigator import child_segment
from kvscope.nav.path_model import ROOT, Path
from kvscope.nodes import NodeKind, SortOrder, children, is_composite, kind_of, ordered_keys, stringify

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Hit:
    """A deep-search match."""
    full_path: Path
    key: str
    value: str

    def __str__(self) -> str:
        return f"{self.full_path} = {self.value}"


@dataclass(frozen=True)
class SearchResults:
    query: str
    base_path: Path
    hits: tuple[Hit, ...] = ()
    limited: bool = False

    def __len__(self) -> int:
        return len(self.hits)


def deep_search(
    node: Any,
    query: str,
    base_path: Path = ROOT,
    order: SortOrder | str = SortOrder.ASCENDING,
    limit: int = 0,
) -> SearchResults:
    """Case-insensitive substring match on every descendant key and scalar value.

    Hits are in depth-first display order. ``limit`` of 0 means unlimited.
    """
    needle = query.strip().lower()
    if not needle:
        return SearchResults(query, base_path)
    hits: list[Hit] = []

    def walk(current: Any, path: Path) -> bool:
        for key, child in children(current, order):
            child_path = path.child(child_segment(key))
            label = str(key)
            text = "" if is_composite(child) else stringify(child)
            if needle in label.lower() or needle in text.lower():
                if limit and len(hits) >= limit:
                    return False
                hits.append(Hit(child_path, label, stringify(child)))
            if is_composite(child) and not walk(child, child_path):
                return False
        return True

    complete = walk(node, base_path)
    logger.debug("deep search %r below %s: %d hits", query, base_path, len(hits))
    return SearchResults(query, base_path, tuple(hits), limited=not complete)


def type_ahead_filter(node: Any, prefix: str, order: SortOrder | str = SortOrder.ASCENDING) -> list[str]:
    """Keys of a map whose label starts with ``prefix`` (case-insensitive)."""
    if kind_of(node) is not NodeKind.MAP:
        return []
    wanted = prefix.lower()
    return [k for k in ordered_keys(node, order) if str(k).lower().startswith(wanted)]


@dataclass(frozen=True)
class ReturnContext:
    """Saved search plus the hit path it was left through."""
    results: SearchResults
    hit_path: Path


@dataclass
class SearchContext:
    active: bool = False
    results: SearchResults | None = None
    filter_prefix: str = ""
    return_context: ReturnContext | None = None

    @property
    def query(self) -> str:
        return self.results.query if self.results else ""

    @property
    def base_path(self) -> Path | None:
        return self.results.base_path if self.results else None

    @property
    def hits(self) -> tuple[Hit, ...]:
        return self.results.hits if self.results else ()

    def commit(self, results: SearchResults) -> None:
        self.results = results
        self.active = True

    def set_filter(self, prefix: str) -> None:
        self.filter_prefix = prefix

    def drill(self, hit: Hit) -> Path:
        """Save the active search and leave search mode for ``hit``."""
        if self.results is not None:
            self.return_context = ReturnContext(self.results, hit.full_path)
        self.active = False
        self.filter_prefix = ""
        return hit.full_path

    def can_restore(self, path: Path | None) -> bool:
        """Whether going back from ``path`` returns to the saved search.

        True at the drilled hit, at the search base and one level below the
        base, so backing out of a hit never walks past the base.
        """
        saved = self.return_context
        if saved is None or path is None:
            return False
        base = saved.results.base_path
        if path == saved.hit_path or path == base:
            return True
        return path.is_strict_descendant_of(base) and path.parent() == base

    def restore(self) -> SearchResults | None:
        """Pop the return context and make its search active again."""
        saved = self.return_context
        if saved is None:
            return None
        self.return_context = None
        self.results = saved.results
        self.active = True
        return saved.results

    def accept(self) -> None:
        self.active = False
        self.return_context = None
        self.filter_prefix = ""

    def clear(self) -> None:
        """End the visible search; a saved return context survives."""
        self.active = False
        self.results = None
        self.filter_prefix = ""

    def reset(self) -> None:
        self.clear()
        self.return_context = None


@dataclass
class DebounceGate:
    """Ticketing for delayed deep-search runs.

    Every keystroke takes a new ticket; a timer that fires late only acts if
    its ticket is still the newest and its query still matches the input.
    """
    delay_ms: int = 150
    _generation: int = 0
    _pending: str | None = field(default=None, repr=False)

    @property
    def delay(self) -> float:
        return self.delay_ms / 1000.0

    def schedule(self, query: str) -> int:
        self._generation += 1
        self._pending = query
        return self._generation

    def cancel(self) -> None:
        self._generation += 1
        self._pending = None

    def should_fire(self, ticket: int, current_input: str) -> bool:
        if ticket != self._generation or self._pending is None:
            return False
        if current_input != self._pending:
            return False
        self._pending = None
        return True
