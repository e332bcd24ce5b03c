"""Tests for kvscope.toml loading."""

from pathlib import Path

import pytest

from kvscope.config import ExplorerConfig, find_config_file, load_explorer_config
from kvscope.errors import ConfigError

FULL_CONFIG = """
[kvscope]
sort_order = "descending"

[kvscope.decode]
allow = true
auto = "lazy"
max_depth = 5

[kvscope.search]
debounce_ms = 50
result_limit = 10

[kvscope.completion]
limit = 5

[kvscope.functions.size]
examples = ["_.tags.size()"]
description = "Element count"
"""


class TestLoadExplorerConfig:
    def test_defaults_without_file(self, hermetic_env: Path):
        assert load_explorer_config() == ExplorerConfig()

    def test_nested_sections(self, hermetic_env: Path):
        path = hermetic_env / "kvscope.toml"
        path.write_text(FULL_CONFIG)
        config = load_explorer_config(path)
        assert config.sort_order == "descending"
        assert config.auto_decode == "lazy"
        assert config.max_decode_depth == 5
        assert config.search_debounce_ms == 50
        assert config.search_result_limit == 10
        assert config.completion_limit == 5
        assert config.function_examples == {
            "size": {"examples": ["_.tags.size()"], "description": "Element count"}
        }

    def test_directory_argument(self, hermetic_env: Path):
        sub = hermetic_env / "project"
        sub.mkdir()
        (sub / "kvscope.toml").write_text('[kvscope]\nsort_order = "none"\n')
        assert load_explorer_config(sub).sort_order == "none"

    def test_discovered_from_cwd(self, hermetic_env: Path):
        (hermetic_env / "kvscope.toml").write_text("[kvscope.search]\ndebounce_ms = 0\n")
        assert load_explorer_config().search_debounce_ms == 0

    def test_other_sections_ignored(self, hermetic_env: Path):
        path = hermetic_env / "kvscope.toml"
        path.write_text('[tool]\nname = "x"\n')
        assert load_explorer_config(path) == ExplorerConfig()

    def test_unknown_keys_warn(self, hermetic_env: Path, caplog):
        path = hermetic_env / "kvscope.toml"
        path.write_text("[kvscope]\ncolour = 1\n\n[kvscope.search]\nfuzzy = true\n")
        config = load_explorer_config(path)
        assert config == ExplorerConfig()
        assert "colour" in caplog.text
        assert "fuzzy" in caplog.text


class TestValidation:
    def test_bad_auto_decode(self, hermetic_env: Path):
        path = hermetic_env / "kvscope.toml"
        path.write_text('[kvscope.decode]\nauto = "always"\n')
        with pytest.raises(ConfigError, match="auto_decode"):
            load_explorer_config(path)

    def test_negative_limit(self):
        with pytest.raises(ConfigError):
            ExplorerConfig(search_result_limit=-1).validate()

    def test_bad_sort_order(self):
        with pytest.raises(ValueError):
            ExplorerConfig(sort_order="random").validate()

    def test_malformed_toml(self, hermetic_env: Path):
        path = hermetic_env / "kvscope.toml"
        path.write_text("[kvscope\n")
        with pytest.raises(ConfigError):
            load_explorer_config(path)

    def test_missing_explicit_file(self, hermetic_env: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_explorer_config(hermetic_env / "missing.toml")

    def test_directory_without_file(self, hermetic_env: Path):
        assert load_explorer_config(hermetic_env) == ExplorerConfig()


class TestFindConfigFile:
    def test_found_in_parent(self, hermetic_env: Path, monkeypatch: pytest.MonkeyPatch):
        (hermetic_env / "kvscope.toml").write_text("[kvscope]\n")
        sub = hermetic_env / "a" / "b"
        sub.mkdir(parents=True)
        monkeypatch.chdir(sub)
        assert find_config_file() == (hermetic_env / "kvscope.toml").resolve()

    def test_stops_at_git_root(self, hermetic_env: Path):
        (hermetic_env / "kvscope.toml").write_text("[kvscope]\n")
        repo = hermetic_env / "repo"
        (repo / ".git").mkdir(parents=True)
        sub = repo / "src"
        sub.mkdir()
        assert find_config_file(sub) is None

    def test_git_root_file_is_used(self, hermetic_env: Path):
        repo = hermetic_env / "repo"
        (repo / ".git").mkdir(parents=True)
        (repo / "kvscope.toml").write_text("[kvscope]\n")
        assert find_config_file(repo / "src") == (repo / "kvscope.toml").resolve()
