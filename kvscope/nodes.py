"""Node classification helpers.

Trees are plain Python containers as produced by json/yaml loaders: ``dict``
for maps, ``list`` for sequences, everything else is a scalar. All dispatch
goes through :func:`kind_of` so that the map/sequence/scalar split is decided
in one place.
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime, timedelta
from enum import Enum
import json
from typing import Any


class NodeKind(Enum):
    MAP = "map"
    SEQUENCE = "sequence"
    SCALAR = "scalar"


class SortOrder(str, Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"
    NONE = "none"


def kind_of(node: Any) -> NodeKind:
    if isinstance(node, dict):
        return NodeKind.MAP
    if isinstance(node, (list, tuple)):
        return NodeKind.SEQUENCE
    return NodeKind.SCALAR


def is_composite(node: Any) -> bool:
    """Maps and sequences are drillable, everything else is a leaf."""
    return kind_of(node) is not NodeKind.SCALAR


def type_tag(value: Any) -> str:
    """Return the expression-language type tag for a value."""
    if value is None:
        return "null"
    # bool is an int subclass, check it first
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "double"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (bytes, bytearray)):
        return "bytes"
    if isinstance(value, datetime):
        return "timestamp"
    if isinstance(value, timedelta):
        return "duration"
    kind = kind_of(value)
    if kind is NodeKind.MAP:
        return "map"
    if kind is NodeKind.SEQUENCE:
        return "list"
    return "unknown"


def ordered_keys(node: dict, order: SortOrder | str = SortOrder.ASCENDING) -> list[str]:
    keys = list(node.keys())
    order = SortOrder(order)
    if order is SortOrder.ASCENDING:
        return sorted(keys, key=str)
    if order is SortOrder.DESCENDING:
        return sorted(keys, key=str, reverse=True)
    return keys


def children(node: Any, order: SortOrder | str = SortOrder.ASCENDING) -> Iterator[tuple[str | int, Any]]:
    """Yield ``(key_or_index, child)`` pairs of a composite node in display order."""
    kind = kind_of(node)
    if kind is NodeKind.MAP:
        for key in ordered_keys(node, order):
            yield key, node[key]
    elif kind is NodeKind.SEQUENCE:
        yield from enumerate(node)


def stringify(value: Any) -> str:
    """Render a value on one line for tables, hits and status messages."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    if is_composite(value):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
    return str(value)
