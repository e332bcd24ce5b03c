"""Tests for input classification and evaluation routing."""

import pytest

from kvscope.expr.gateway import ExpressionGateway, ExprState, auto_prefix
from kvscope.nav.path_model import parse_path


@pytest.fixture
def gateway():
    return ExpressionGateway()


class TestPlainPaths:
    def test_resolved_through_navigator(self, gateway, sample_tree):
        outcome = gateway.evaluate("_.regions.asia", sample_tree)
        assert outcome.success
        assert outcome.node is sample_tree["regions"]["asia"]
        assert outcome.path == parse_path("_.regions.asia")
        assert not outcome.is_free_form
        assert outcome.result_type == "map"

    def test_not_found_is_reported(self, gateway, sample_tree):
        outcome = gateway.evaluate("_.regions.africa", sample_tree)
        assert not outcome.success
        assert "africa" in outcome.error
        assert not outcome.is_free_form

    def test_malformed_is_reported(self, gateway, sample_tree):
        outcome = gateway.evaluate("_.items[", sample_tree)
        assert not outcome.success
        assert "unbalanced" in outcome.error

    def test_empty_input(self, gateway, sample_tree):
        assert not gateway.evaluate("  ", sample_tree).success


class TestFreeForm:
    def test_computed_result_has_no_path(self, gateway):
        outcome = gateway.evaluate("_.items.size()", {"items": [1, 2, 3]})
        assert outcome.success
        assert outcome.node == 3
        assert outcome.result_type == "int"
        assert outcome.is_free_form
        assert outcome.path is None

    @pytest.mark.parametrize("expr, value", [('"hi".size()', 2), ("[1,2][0]", 1), ("[1][0]", 1), ('["a"][0]', "a"), ('{"a":1}.a', 1)])
    def test_literals(self, gateway, sample_tree, expr, value):
        outcome = gateway.evaluate(expr, sample_tree)
        assert outcome.node == value
        assert outcome.path is None
        assert outcome.is_free_form

    def test_leading_bracket_is_a_list_literal(self, gateway):
        """[0] is a one-element list, not index 0 of the root."""
        outcome = gateway.evaluate("[0]", ["x", "y"])
        assert outcome.success
        assert outcome.node == [0]
        assert outcome.is_free_form
        assert outcome.path is None

    def test_explicit_root_index_is_a_path(self, gateway):
        outcome = gateway.evaluate("_[1]", ["x", "y"])
        assert outcome.node == "y"
        assert not outcome.is_free_form
        assert outcome.path == parse_path("_[1]")

    def test_path_shaped_expression_keeps_path(self, gateway, sample_tree):
        """A parenthesised path still supports back-navigation."""
        outcome = gateway.evaluate("(_.items[0])", sample_tree)
        assert outcome.is_free_form
        assert outcome.node is sample_tree["items"][0]
        assert outcome.path == parse_path("_.items[0]")

    def test_evaluation_error_is_status(self, gateway, sample_tree):
        before = repr(sample_tree)
        outcome = gateway.evaluate("_.items.size(", sample_tree)
        assert not outcome.success
        assert outcome.error
        assert outcome.is_free_form
        assert repr(sample_tree) == before

    def test_expr_state(self, gateway, sample_tree):
        outcome = gateway.evaluate("_.count + 1", sample_tree)
        assert outcome.expr_state == ExprState("_.count + 1", True, "int")


class TestAutoPrefix:
    @pytest.mark.parametrize(
        "token, expected",
        [
            ("regions.asia", "_.regions.asia"),
            ("items", "_.items"),
            ("items[0]", "_.items[0]"),
            ("_.x", "_.x"),
            ("_", "_"),
            ('"hi".size()', '"hi".size()'),
            ("size(_.items)", "size(_.items)"),
            ("a == b", "a == b"),
            ("[0]", "[0]"),
            ('["a.b"]', '["a.b"]'),
            ("42", "42"),
            ("true", "true"),
        ],
    )
    def test_prefix_rule(self, token, expected):
        assert auto_prefix(token) == expected


class TestInferType:
    def test_success(self, gateway, sample_tree):
        assert gateway.infer_type("_.items.size()", sample_tree) == "int"
        assert gateway.infer_type("_.regions", sample_tree) == "map"

    def test_failure_is_empty(self, gateway, sample_tree):
        assert gateway.infer_type("_.nope", sample_tree) == ""
