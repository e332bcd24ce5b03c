"""Document loader: turns a file, stdin or embedded text into a tree."""

from __future__ import annotations

import json
import logging
import re
import sys
from pathlib import Path
from typing import Any

import tomllib
import yaml

from kvscope.errors import LoaderError
from kvscope.nodes import is_composite

logger = logging.getLogger(__name__)

FORMATS = ("json", "yaml", "toml", "ndjson")

_EXTENSIONS = {
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".ndjson": "ndjson",
    ".jsonl": "ndjson",
}

_TOML_KEY = r"""(?:[A-Za-z_][A-Za-z0-9_-]*|"[^"]+"|'[^']+')"""
# Both must start at column 0 so indented YAML values do not match.
_TOML_SECTION_RE = re.compile(rf"^\[{{1,2}}{_TOML_KEY}(?:\.{_TOML_KEY})*\]{{1,2}}\s*$")
_TOML_KEY_VALUE_RE = re.compile(rf"^{_TOML_KEY}(?:\.{_TOML_KEY})*\s*=\s*.+$")


def _key(key: Any) -> str:
    if isinstance(key, str):
        return key
    if isinstance(key, bool):
        return "true" if key else "false"
    if key is None:
        return "null"
    return str(key)


class _StringKeyLoader(yaml.SafeLoader):
    """SafeLoader that stringifies mapping keys while building each map.

    Keys such as ``1`` and ``true`` compare equal as Python objects, so they
    have to become strings before they land in the same dict.
    """

    def construct_mapping(self, node, deep=False):
        if not isinstance(node, yaml.MappingNode):
            raise yaml.constructor.ConstructorError(
                None, None, f"expected a mapping node, but found {node.id}", node.start_mark
            )
        self.flatten_mapping(node)
        mapping = {}
        for key_node, value_node in node.value:
            key = _key(self.construct_object(key_node, deep=True))
            mapping[key] = self.construct_object(value_node, deep=deep)
        return mapping


def _normalize(node: Any) -> Any:
    # Map keys are always strings in the tree.
    if isinstance(node, dict):
        return {_key(k): _normalize(v) for k, v in node.items()}
    if isinstance(node, (list, tuple)):
        return [_normalize(v) for v in node]
    return node


def _looks_like_ndjson(lines: list[str]) -> bool:
    json_lines = sum(1 for line in lines if line.startswith(("{", "[")))
    return len(lines) > 1 and json_lines > len(lines) // 2


def _looks_like_toml(lines: list[str]) -> bool:
    entries = [line for line in lines if not line.lstrip().startswith("#")]
    if any(_TOML_SECTION_RE.match(line) for line in entries):
        return True
    pairs = sum(1 for line in entries if _TOML_KEY_VALUE_RE.match(line))
    return bool(entries) and pairs > len(entries) // 2


def candidate_formats(text: str) -> list[str]:
    """Formats to try for ``text``, most likely first.

    Every format is listed except ndjson, which only appears when the lines
    look like JSON documents.
    """
    stripped = text.strip()
    raw_lines = [line for line in stripped.splitlines() if line.strip()]
    primary = []
    if stripped.startswith("---") or "\n---" in stripped:
        primary.append("yaml")
    if _looks_like_ndjson([line.strip() for line in raw_lines]):
        primary.append("ndjson")
    if _looks_like_toml(raw_lines):
        primary.append("toml")
    if stripped.startswith(("{", "[")):
        primary.append("json")
    for fmt in ("yaml", "toml", "json"):
        if fmt not in primary:
            primary.append(fmt)
    return primary


def detect_format(text: str, filename: str | None = None) -> str:
    """Pick a format from the file extension, else sniff the content."""
    if filename:
        fmt = _EXTENSIONS.get(Path(filename).suffix.lower())
        if fmt:
            return fmt
    return candidate_formats(text)[0]


def parse_document(text: str, fmt: str) -> Any:
    """Parse ``text`` as ``fmt``. Raises LoaderError on malformed input."""
    try:
        if fmt == "json":
            return _normalize(json.loads(text))
        if fmt == "ndjson":
            return [_normalize(json.loads(line)) for line in text.splitlines() if line.strip()]
        if fmt == "toml":
            return _normalize(tomllib.loads(text))
        if fmt == "yaml":
            docs = list(yaml.load_all(text, Loader=_StringKeyLoader))
            if not docs:
                return None
            return _normalize(docs[0] if len(docs) == 1 else docs)
    except json.JSONDecodeError as exc:
        raise LoaderError(f"invalid JSON at line {exc.lineno} column {exc.colno}: {exc.msg}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise LoaderError(f"invalid TOML: {exc}") from exc
    except yaml.YAMLError as exc:
        raise LoaderError(f"invalid YAML: {exc}") from exc
    raise LoaderError(f"unknown format {fmt!r} (expected one of {', '.join(FORMATS)})")


def parse_text(text: str, filename: str | None = None) -> Any:
    """Parse ``text`` in the format its extension names, else try each likely format.

    Raises:
        LoaderError: listing every attempt when no format accepts the text.
    """
    if filename and Path(filename).suffix.lower() in _EXTENSIONS:
        return parse_document(text, detect_format(text, filename))
    errors = []
    for fmt in candidate_formats(text):
        try:
            return parse_document(text, fmt)
        except LoaderError as exc:
            logger.debug("parse as %s failed, trying next format: %s", fmt, exc)
            errors.append(f"{fmt}: {exc}")
    raise LoaderError("no format could parse the document:\n  " + "\n  ".join(errors))


def parse_structured(text: str) -> tuple[str, Any] | None:
    """Format and composite value of serialized text embedded in a string.

    The first format that parses wins; a scalar result (a plain word parses
    as a YAML string) means the text is not serialized data.
    """
    stripped = text.strip()
    if not stripped:
        return None
    for fmt in candidate_formats(stripped):
        try:
            value = parse_document(stripped, fmt)
        except LoaderError:
            continue
        return (fmt, value) if is_composite(value) else None
    return None


def load_document(source: str | Path, fmt: str | None = None) -> Any:
    """Load a document from a path, or from stdin when ``source`` is ``-``."""
    if str(source) == "-":
        text = sys.stdin.read()
        name = None
    else:
        path = Path(source)
        if not path.is_file():
            raise LoaderError(f"file not found: {path}")
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise LoaderError(f"cannot read {path}: {exc}") from exc
        name = path.name
    logger.debug("loading %s as %s", name or "<stdin>", fmt or "auto")
    if fmt:
        return parse_document(text, fmt)
    return parse_text(text, name)
