"""Tests for completion suggestions and their insertion."""

import pytest

from kvscope.completion.engine import (
    CompletionContext,
    CompletionEngine,
    InputMode,
    Suggestion,
    SuggestionKind,
    analyze_input,
    insert_text,
)
from kvscope.completion.registry import FunctionRegistry
from kvscope.expr.functions import CATALOG


@pytest.fixture
def registry():
    return FunctionRegistry(CATALOG)


@pytest.fixture
def engine(registry):
    return CompletionEngine(registry)


def labels(suggestions, kind=None):
    return [s.label for s in suggestions if kind is None or s.kind is kind]


def after_dot(node, result_type=""):
    return CompletionContext.for_node(node, result_type, is_after_dot=True)


class TestAnalyzeInput:
    def test_trailing_dot(self):
        shape = analyze_input("_.items.")
        assert shape.mode is InputMode.DOT
        assert shape.base == "_.items"
        assert shape.is_after_dot

    def test_partial_after_dot(self):
        shape = analyze_input("_.items.si")
        assert (shape.mode, shape.base, shape.token) == (InputMode.PARTIAL, "_.items", "si")
        assert shape.is_after_dot

    def test_bare_token(self):
        shape = analyze_input("reg")
        assert (shape.mode, shape.base, shape.token, shape.prefix) == (InputMode.PARTIAL, "", "reg", "")
        assert not shape.is_after_dot

    def test_open_bracket(self):
        shape = analyze_input("_[")
        assert (shape.mode, shape.base, shape.token) == (InputMode.BRACKET, "_", "")

    def test_open_quoted_bracket(self):
        shape = analyze_input('_["a.')
        assert (shape.mode, shape.token) == (InputMode.BRACKET, "a.")

    def test_dot_after_closed_bracket(self):
        assert analyze_input("_.items[0].").base == "_.items[0]"

    @pytest.mark.parametrize("text", ["_.items.size()", '"abc.', "a == ", ""])
    def test_nothing_to_complete(self, text):
        assert analyze_input(text).mode is InputMode.NONE


class TestTrailingDot:
    def test_functions_first_then_indices(self, engine):
        results = engine.suggest("_.items.", after_dot([1, 2]))
        names = labels(results, SuggestionKind.FUNCTION)
        assert {"flatten", "filter", "size", "sort"} <= set(names)
        assert "lowerAscii" not in names and "abs" not in names
        assert [s.kind for s in results[-2:]] == [SuggestionKind.INDEX, SuggestionKind.INDEX]
        assert results[0].is_function

    def test_int_never_gets_list_or_string_only_functions(self, engine):
        results = engine.suggest("_.count.", after_dot(3))
        for s in results:
            receivers = set(s.function.receiver_types)
            assert not receivers or "int" in receivers, s.label
        names = labels(results)
        assert "abs" in names and "math.abs" in names
        assert "flatten" not in names and "lowerAscii" not in names

    def test_expression_result_type_wins(self, engine):
        """After .size() the effective type is int even though the node is a list."""
        ctx = CompletionContext([1, 2, 3], "list", "int", True)
        names = labels(engine.suggest("_.items.size().", ctx))
        assert "abs" in names
        assert "flatten" not in names

    def test_string_excludes_list_methods(self, engine):
        names = labels(engine.suggest("_.name.", after_dot("apple")))
        assert "lowerAscii" in names
        assert "flatten" not in names and "abs" not in names

    def test_map_keys_skip_quoted(self, engine, sample_tree):
        results = engine.suggest("_.", after_dot(sample_tree))
        assert labels(results, SuggestionKind.KEY) == ["count", "items", "payload", "regions"]


class TestPartialToken:
    def test_prefix_filters_functions(self, engine):
        assert labels(engine.suggest("_.items.fl", after_dot([1]))) == ["flatten"]

    def test_prefix_is_case_sensitive(self, engine):
        assert engine.suggest("_.items.FL", after_dot([1])) == []

    def test_prefix_filters_keys(self, engine, sample_tree):
        assert labels(engine.suggest("_.re", after_dot(sample_tree))) == ["regions"]

    def test_bare_token_offers_keys_then_globals(self, engine, sample_tree):
        results = engine.suggest("i", CompletionContext.for_node(sample_tree))
        assert labels(results)[:2] == ["items", "int"]
        assert all(not s.function.is_method for s in results if s.is_function)


class TestBrackets:
    def test_indices_for_sequence(self, engine):
        assert labels(engine.suggest("_.items[", CompletionContext.for_node(["a", "b"]))) == ["[0]", "[1]"]

    def test_quoted_keys_for_map(self, engine, sample_tree):
        assert labels(engine.suggest("_[", CompletionContext.for_node(sample_tree))) == ['["a.b"]']

    def test_partial_quoted_key(self, engine, sample_tree):
        assert labels(engine.suggest('_["a', CompletionContext.for_node(sample_tree))) == ['["a.b"]']

    def test_no_indices_for_map(self, engine, sample_tree):
        results = engine.suggest("_[", CompletionContext.for_node(sample_tree))
        assert not labels(results, SuggestionKind.INDEX)


class TestNamespaces:
    def test_namespace_lists_its_functions(self, engine):
        assert labels(engine.suggest("base64.", CompletionContext())) == ["base64.decode", "base64.encode"]

    def test_namespace_partial(self, engine):
        assert labels(engine.suggest("math.ab", CompletionContext())) == ["math.abs"]

    def test_no_duplicated_namespace(self, engine, registry):
        decode = Suggestion(SuggestionKind.FUNCTION, "base64.decode", function=registry.get("base64.decode"))
        assert engine.apply("_.base64.", decode) == "_.base64.decode("
        assert engine.apply("base64.", decode) == "base64.decode("
        assert engine.apply("base64.de", decode) == "base64.decode("


class TestApply:
    def test_method_appends(self, engine, registry):
        flatten = Suggestion(SuggestionKind.FUNCTION, "flatten", function=registry.get("flatten"))
        assert engine.apply("_.items.", flatten) == "_.items.flatten("
        assert engine.apply("_.items.fl", flatten) == "_.items.flatten("

    def test_global_wraps_expression(self, engine, registry):
        abs_ = Suggestion(SuggestionKind.FUNCTION, "math.abs", function=registry.get("math.abs"))
        assert engine.apply("_.value.", abs_) == "math.abs(_.value"

    def test_global_from_bare_token(self, engine, registry):
        abs_ = Suggestion(SuggestionKind.FUNCTION, "math.abs", function=registry.get("math.abs"))
        assert engine.apply("ma", abs_) == "math.abs("

    def test_keys_and_indices(self, engine):
        regions = Suggestion(SuggestionKind.KEY, "regions", key="regions")
        dotted = Suggestion(SuggestionKind.KEY, '["a.b"]', key="a.b")
        first = Suggestion(SuggestionKind.INDEX, "[1]", key=1)
        assert engine.apply("_.reg", regions) == "_.regions"
        assert engine.apply("_.", regions) == "_.regions"
        assert engine.apply("re", regions) == "regions"
        assert engine.apply("_[", dotted) == '_["a.b"]'
        assert engine.apply('_["a', dotted) == '_["a.b"]'
        assert engine.apply("_.items[", first) == "_.items[1]"
        assert engine.apply("_.items.", first) == "_.items[1]"

    def test_insert_text(self, registry):
        assert insert_text(registry.get("flatten")) == ".flatten("
        assert insert_text(registry.get("math.abs")) == "math.abs("


class TestContext:
    def test_limit(self, registry):
        engine = CompletionEngine(registry, limit=3)
        assert len(engine.suggest("_.items.", after_dot([1, 2]))) == 3

    def test_type_hook_evaluates_base(self, registry):
        seen = []

        def hook(expr):
            seen.append(expr)
            return (7, "int") if expr == "_.items.size()" else None

        engine = CompletionEngine(registry, type_hook=hook)
        ctx = engine.context_for("_.items.size().", current_node=[1, 2])
        assert seen == ["_.items.size()"]
        assert ctx.effective_type == "int"
        assert ctx.is_after_dot

    def test_failed_hook_falls_back_to_node(self, registry):
        engine = CompletionEngine(registry, type_hook=lambda expr: None)
        ctx = engine.context_for("_.nope.", current_node={"a": 1})
        assert ctx.effective_type == "map"

    def test_help_text(self, registry):
        s = Suggestion(SuggestionKind.FUNCTION, "size", function=registry.get("size"))
        assert s.help_text.startswith("size() - ")
        assert Suggestion(SuggestionKind.KEY, "regions", key="regions").help_text == "regions"
