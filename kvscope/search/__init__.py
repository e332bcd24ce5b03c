"""Deep search, type-ahead filtering and search return context."""

from .context import (
    DebounceGate,
    Hit,
    ReturnContext,
    SearchContext,
    SearchResults,
    deep_search,
    type_ahead_filter,
)

__all__ = [
    "DebounceGate",
    "Hit",
    "ReturnContext",
    "SearchContext",
    "SearchResults",
    "deep_search",
    "type_ahead_filter",
]
