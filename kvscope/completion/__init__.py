"""Completion engine and function registry."""

from .engine import (
    CompletionContext,
    CompletionEngine,
    InputMode,
    InputShape,
    Suggestion,
    SuggestionKind,
    analyze_input,
    insert_text,
)
from .registry import CATEGORY_ORDER, FunctionMetadata, FunctionRegistry, categorize

__all__ = [
    "CATEGORY_ORDER",
    "CompletionContext",
    "CompletionEngine",
    "FunctionMetadata",
    "FunctionRegistry",
    "InputMode",
    "InputShape",
    "Suggestion",
    "SuggestionKind",
    "analyze_input",
    "categorize",
    "insert_text",
]
