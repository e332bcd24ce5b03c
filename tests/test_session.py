"""End-to-end tests for the Explorer session façade."""

import pytest

from kvscope.completion.engine import SuggestionKind
from kvscope.config import ExplorerConfig
from kvscope.nav.path_model import ROOT, parse_path
from kvscope.session import Explorer


class TestNavigation:
    def test_back_walks_up_to_root(self, explorer):
        assert explorer.goto("_.regions.asia").ok
        explorer.back()
        assert explorer.path_text == "_.regions"
        explorer.back()
        assert explorer.path_text == "_"

    def test_goto_without_alias(self, explorer):
        assert explorer.goto("regions.asia").ok
        assert explorer.path_text == "_.regions.asia"

    def test_failed_goto_keeps_state(self, explorer):
        explorer.goto("_.regions")
        status = explorer.goto("_.nope")
        assert not status.ok
        assert "nope" in status.message
        assert explorer.path_text == "_.regions"

    def test_malformed_path_is_status(self, explorer):
        status = explorer.goto("_.items[")
        assert not status.ok
        assert explorer.path == ROOT

    def test_drill(self, explorer, sample_tree):
        assert explorer.drill("items").ok
        assert explorer.drill(0).ok
        assert explorer.node is sample_tree["items"][0]
        assert explorer.path_text == "_.items[0]"

    def test_drill_into_scalar_fails(self, explorer):
        explorer.goto("_.count")
        assert not explorer.drill("x").ok
        assert explorer.path_text == "_.count"

    def test_back_after_computed_result_uses_history(self, explorer):
        explorer.goto("_.regions")
        explorer.goto("_.items.size()")
        assert explorer.path is None
        assert explorer.path_text == "_.items.size()"
        assert explorer.back().ok
        assert explorer.path_text == "_.regions"

    def test_back_at_root_is_noop(self, explorer):
        assert explorer.back().ok
        assert explorer.path == ROOT

    def test_rows(self, explorer):
        rows = explorer.rows()
        assert [r.label for r in rows] == ['["a.b"]', "count", "items", "payload", "regions"]
        by_label = {r.label: r for r in rows}
        assert by_label["count"].type_tag == "int"
        assert by_label["count"].preview == "3"
        assert by_label["items"].preview == "2 item(s)"

    def test_descending_sort(self, sample_tree):
        explorer = Explorer(sample_tree, ExplorerConfig(sort_order="descending"))
        assert explorer.rows()[0].label == "regions"


class TestExpressions:
    def test_computed_result(self):
        explorer = Explorer({"items": [1, 2, 3]})
        assert explorer.goto("_.items.size()").ok
        assert explorer.node == 3
        assert explorer.expr_state.result_type == "int"
        assert explorer.expr_state.is_free_form

    def test_evaluation_error_leaves_tree(self, explorer, sample_tree):
        before = repr(sample_tree)
        status = explorer.goto("_.items.size(")
        assert not status.ok
        assert repr(explorer.root) == before
        assert explorer.path == ROOT

    def test_suggestions_follow_expression_type(self):
        explorer = Explorer({"items": [1, 2, 3]})
        names = [s.label for s in explorer.suggestions("_.items.size().")]
        assert "abs" in names
        assert "flatten" not in names

    def test_suggestions_for_list_path(self, explorer):
        results = explorer.suggestions("_.items.")
        names = [s.label for s in results]
        assert "flatten" in names
        assert [s.label for s in results if s.kind is SuggestionKind.INDEX] == ["[0]", "[1]"]

    def test_apply_suggestion(self, explorer):
        first = explorer.suggestions("_.reg")[0]
        assert explorer.apply_suggestion("_.reg", first) == "_.regions"

    def test_function_overrides(self, sample_tree):
        config = ExplorerConfig(function_examples={"size": {"examples": ["_.tags.size()"]}})
        explorer = Explorer(sample_tree, config)
        assert explorer.registry.get("size").examples == ("_.tags.size()",)


class TestDecoding:
    def test_decode_keeps_path(self):
        explorer = Explorer({"payload": '{"nested":true}'})
        explorer.goto("_.payload")
        assert explorer.decode_hint
        assert explorer.decode().ok
        assert explorer.node == {"nested": True}
        assert explorer.decode_state.active
        assert explorer.decode_state.decode_point == parse_path("_.payload")
        assert explorer.path_text == "_.payload"
        assert explorer.decode_badge == "decoded @ _.payload"

    def test_decode_dotted_key(self):
        root = {"a.b": '{"x":1}'}
        explorer = Explorer(root)
        explorer.goto('_["a.b"]')
        explorer.decode()
        assert root == {"a.b": {"x": 1}}
        assert explorer.drill("x").ok
        assert explorer.path_text == '_["a.b"].x'
        assert explorer.decode_state.active

    def test_leaving_decoded_subtree_clears_badge(self, explorer):
        explorer.goto("_.payload")
        explorer.decode()
        explorer.back()
        assert not explorer.decode_state.active
        assert explorer.decode_badge == ""

    def test_plain_string_is_silent(self, explorer):
        explorer.goto("_.items[0].name")
        status = explorer.decode()
        assert status.ok
        assert status.message == ""
        assert explorer.node == "apple"

    def test_decode_computed_result(self, explorer):
        explorer.goto("'{\"a\": 1}'")
        explorer.decode()
        assert explorer.node == {"a": 1}
        assert explorer.path is None

    def test_lazy_decode_on_drill(self, sample_tree):
        explorer = Explorer(sample_tree, ExplorerConfig(auto_decode="lazy"))
        explorer.drill("payload")
        assert explorer.node == {"nested": True}
        assert explorer.decode_state.active

    def test_eager_decode_at_load(self, sample_tree):
        explorer = Explorer(sample_tree, ExplorerConfig(auto_decode="eager"))
        assert explorer.root["payload"] == {"nested": True}
        assert explorer.root["a.b"] == {"x": 1}
        assert not explorer.decode_state.active

    def test_decode_disabled(self, sample_tree):
        explorer = Explorer(sample_tree, ExplorerConfig(allow_decode=False))
        explorer.goto("_.payload")
        explorer.decode()
        assert isinstance(explorer.node, str)


class TestSearch:
    def test_search_drill_drill_back_back_restores_results(self, explorer):
        explorer.run_search("asia")
        hits = explorer.search.hits
        assert explorer.open_hit(0).ok
        assert explorer.path_text == "_.regions.asia"
        assert not explorer.search.active
        explorer.drill("countries")
        explorer.back()
        assert explorer.path_text == "_.regions.asia"
        assert not explorer.search.active
        explorer.back()
        assert explorer.search.active
        assert explorer.path == ROOT
        assert explorer.search.hits == hits
        assert explorer.search.return_context is None

    def test_search_drill_accept(self, explorer):
        explorer.run_search("asia")
        explorer.open_hit(0)
        explorer.accept()
        assert not explorer.search.active
        assert explorer.search.return_context is None
        explorer.back()
        assert explorer.path_text == "_.regions"
        assert not explorer.search.active

    def test_search_below_current_path(self, explorer):
        explorer.goto("_.regions")
        status = explorer.run_search("fr")
        assert status.ok
        assert [str(h.full_path) for h in explorer.search.hits] == ["_.regions.europe.countries[0]"]

    def test_search_limit(self, sample_tree):
        explorer = Explorer(sample_tree, ExplorerConfig(search_result_limit=1))
        status = explorer.run_search("a")
        assert len(explorer.search.hits) == 1
        assert "limited" in status.message

    def test_navigation_ends_search(self, explorer):
        explorer.run_search("asia")
        explorer.goto("_.items")
        assert not explorer.search.active

    def test_bad_hit_index(self, explorer):
        explorer.run_search("asia")
        assert not explorer.open_hit(5).ok

    def test_search_needs_a_path(self, explorer):
        explorer.goto("_.items.size()")
        assert not explorer.run_search("x").ok

    def test_back_from_deep_hit_below_base(self, explorer):
        explorer.goto("_.regions")
        explorer.run_search("countries")
        hits = explorer.search.hits
        assert [str(h.full_path) for h in hits] == [
            "_.regions.asia.countries",
            "_.regions.europe.countries",
        ]
        explorer.open_hit(0)
        explorer.drill(0)
        explorer.back()
        assert explorer.path_text == "_.regions.asia.countries"
        assert not explorer.search.active
        explorer.back()
        assert explorer.search.active
        assert explorer.path_text == "_.regions"
        assert explorer.search.hits == hits

    def test_back_from_scalar_hit(self, explorer):
        explorer.run_search("fr")
        explorer.open_hit(0)
        assert explorer.path_text == "_.regions.europe.countries[0]"
        explorer.back()
        assert explorer.search.active
        assert explorer.path == ROOT

    def test_back_walks_up_to_base(self, explorer):
        explorer.goto("_.regions")
        explorer.run_search("countries")
        explorer.open_hit(0)
        explorer.goto("_.regions.europe")
        assert not explorer.search.active
        explorer.back()
        assert explorer.search.active
        assert explorer.path_text == "_.regions"

    def test_back_outside_base_is_plain(self, explorer):
        explorer.goto("_.regions")
        explorer.run_search("countries")
        explorer.open_hit(0)
        explorer.goto("_.items")
        explorer.back()
        assert not explorer.search.active
        assert explorer.path == ROOT

    def test_preview_does_not_commit(self, explorer):
        preview = explorer.preview_search("asia")
        assert [str(h.full_path) for h in preview.hits] == ["_.regions.asia"]
        assert not explorer.search.active
        assert explorer.search.results is None

    def test_preview_of_computed_result(self, explorer):
        explorer.goto("_.items.size()")
        assert explorer.preview_search("x") is None

    def test_type_ahead(self, explorer):
        assert explorer.filter_keys("it") == ["items"]
        assert explorer.search.filter_prefix == "it"


def test_invalid_config_rejected(sample_tree):
    with pytest.raises(ValueError):
        Explorer(sample_tree, ExplorerConfig(auto_decode="always"))
