"""kvscope - interactive explorer for nested JSON/YAML data."""

__version__ = "0.3.0"

from kvscope.config import ExplorerConfig, load_explorer_config
from kvscope.errors import (
    ConfigError,
    EvaluationError,
    KvscopeError,
    LoaderError,
    MalformedPathError,
    NotFoundError,
)
from kvscope.loader import load_document
from kvscope.session import Explorer, StatusResult

__all__ = [
    "ConfigError",
    "EvaluationError",
    "Explorer",
    "ExplorerConfig",
    "KvscopeError",
    "LoaderError",
    "MalformedPathError",
    "NotFoundError",
    "StatusResult",
    "load_document",
    "load_explorer_config",
]
