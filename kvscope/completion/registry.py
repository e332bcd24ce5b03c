"""Function metadata registry.

Single source of truth for the functions the expression language offers,
deduplicated by name and indexed by category and by method/global status.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable

CATEGORY_ORDER = (
    "conversion",
    "string",
    "list",
    "map",
    "math",
    "encoding",
    "datetime",
    "regex",
    "general",
)

NUMERIC_TYPES = ("int", "uint", "double")


@dataclass(frozen=True)
class FunctionMetadata:
    """Describes one function of the expression language.

    ``receiver_types`` lists the value types a method is called on (or the
    first-argument types of a global); empty means any type.
    """
    name: str
    category: str = "general"
    is_method: bool = False
    signature: str = ""
    description: str = ""
    examples: tuple[str, ...] = ()
    receiver_types: tuple[str, ...] = ()
    return_type: str = "any"

    @property
    def namespace(self) -> str:
        """``base64`` for ``base64.decode``; empty for plain names."""
        head, sep, _ = self.name.rpartition(".")
        return head if sep else ""

    @property
    def short_name(self) -> str:
        return self.name.rpartition(".")[2]

    def accepts(self, type_tag: str) -> bool:
        if not self.receiver_types or not type_tag:
            return True
        return type_tag in self.receiver_types


def _better(candidate: FunctionMetadata, existing: FunctionMetadata) -> bool:
    if len(candidate.examples) != len(existing.examples):
        return len(candidate.examples) > len(existing.examples)
    return len(candidate.description) > len(existing.description)


def categorize(name: str, description: str = "") -> str:
    """Guess a category for functions known only by name and description."""
    name_l = name.lower()
    desc_l = description.lower()
    if name_l in ("int", "uint", "double", "bool", "bytes", "string", "type"):
        return "conversion"
    if any(s in name_l for s in ("regex", "matches")):
        return "regex"
    if any(s in name_l for s in ("base64", "encode", "decode")):
        return "encoding"
    if any(s in name_l for s in ("timestamp", "duration", "date", "time")):
        return "datetime"
    if "string" in desc_l or any(s in name_l for s in ("upper", "lower", "trim", "split", "join")):
        return "string"
    if "list" in desc_l or "array" in desc_l or any(
        s in name_l for s in ("filter", "map", "all", "exists", "flatten", "slice")
    ):
        return "list"
    if "math" in desc_l or any(s in name_l for s in ("abs", "ceil", "floor", "round", "sqrt", "min", "max")):
        return "math"
    if any(s in name_l for s in ("keys", "values", "has")):
        return "map"
    return "general"


class FunctionRegistry:
    """Registry of :class:`FunctionMetadata` keyed by name."""

    def __init__(self, functions: Iterable[FunctionMetadata] = ()):
        self._functions: dict[str, FunctionMetadata] = {}
        self._by_category: dict[str, list[str]] = {}
        self._names: list[str] = []
        if functions:
            self.load_functions(functions)

    def load_functions(self, functions: Iterable[FunctionMetadata]) -> None:
        """Replace the contents; duplicates keep the entry with more examples,
        then the longer description."""
        deduped: dict[str, FunctionMetadata] = {}
        for fn in functions:
            existing = deduped.get(fn.name)
            if existing is None or _better(fn, existing):
                deduped[fn.name] = fn
        self._functions = deduped
        self._reindex()

    def load_from_evaluator(self, evaluator) -> None:
        self.load_functions(evaluator.discover_function_metadata())

    def _reindex(self) -> None:
        self._names = sorted(self._functions)
        self._by_category = {}
        for name in self._names:
            category = self._functions[name].category or "general"
            self._by_category.setdefault(category, []).append(name)

    def add(self, fn: FunctionMetadata) -> None:
        self._functions[fn.name] = fn
        self._reindex()

    def apply_overrides(self, overrides: dict[str, dict]) -> None:
        """Merge configured descriptions/examples into existing entries."""
        for name, data in overrides.items():
            fn = self._functions.get(name)
            if fn is None:
                continue
            examples = data.get("examples")
            description = data.get("description")
            self._functions[name] = replace(
                fn,
                examples=tuple(examples) if examples else fn.examples,
                description=description or fn.description,
            )
        self._reindex()

    def supplement_from_suggestions(self, suggestions: Iterable[str]) -> None:
        """Add functions given as ``"name(args) - description"`` strings.

        Entries already present with a description are left alone.
        """
        for raw in suggestions:
            text = raw.strip()
            if not text:
                continue
            signature, _, description = text.partition(" - ")
            signature = signature.strip()
            description = description.strip()
            name = signature.split("(", 1)[0].strip()
            if not name:
                continue
            existing = self._functions.get(name)
            if existing is not None and existing.description:
                continue
            self._functions[name] = FunctionMetadata(
                name=name,
                category=categorize(name, description),
                is_method="method" in description.lower(),
                signature=signature,
                description=description,
            )
        self._reindex()

    def get(self, name: str) -> FunctionMetadata | None:
        return self._functions.get(name)

    def all(self) -> list[FunctionMetadata]:
        return [self._functions[n] for n in self._names]

    def by_category(self, category: str) -> list[FunctionMetadata]:
        return [self._functions[n] for n in self._by_category.get(category, [])]

    def categories(self) -> list[str]:
        """Non-empty categories in display order, unknown ones last."""
        ordered = [c for c in CATEGORY_ORDER if self._by_category.get(c)]
        extra = sorted(c for c in self._by_category if c not in CATEGORY_ORDER)
        return ordered + extra

    def search(self, query: str) -> list[FunctionMetadata]:
        if not query:
            return self.all()
        q = query.lower()
        return [
            fn for fn in self.all()
            if q in fn.name.lower() or q in fn.description.lower()
        ]

    def methods(self) -> list[FunctionMetadata]:
        return [fn for fn in self.all() if fn.is_method]

    def globals(self) -> list[FunctionMetadata]:
        return [fn for fn in self.all() if not fn.is_method]

    def compatible(self, type_tag: str) -> list[FunctionMetadata]:
        return [fn for fn in self.all() if fn.accepts(type_tag)]

    def __len__(self) -> int:
        return len(self._functions)

    def __contains__(self, name: str) -> bool:
        return name in self._functions
