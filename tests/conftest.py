"""Shared fixtures for kvscope tests."""

import copy
from pathlib import Path

import pytest

from kvscope.config import ExplorerConfig
from kvscope.session import Explorer

SAMPLE = {
    "regions": {
        "asia": {"countries": ["jp", "kr"], "population": 4700},
        "europe": {"countries": ["fr"], "population": 750},
    },
    "items": [
        {"name": "apple", "price": 3, "active": True},
        {"name": "pear", "price": 120, "active": False},
    ],
    "a.b": '{"x": 1}',
    "payload": '{"nested": true}',
    "count": 3,
}


@pytest.fixture(autouse=True)
def hermetic_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """
    Autouse: each test runs in its own tmp cwd so config discovery never
    picks up a kvscope.toml from the developer's tree.
    """
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def sample_tree() -> dict:
    """A fresh, mutable copy of the sample document."""
    return copy.deepcopy(SAMPLE)


@pytest.fixture
def explorer(sample_tree) -> Explorer:
    return Explorer(sample_tree, ExplorerConfig())
