"""Built-in functions of the expression dialect.

Methods are looked up by name and called with the receiver as the first
argument. Globals are looked up by (possibly dotted) name. Macros receive
a predicate built from the unevaluated body expression.
"""

from __future__ import annotations

import base64
import binascii
import json
import math
import re
from datetime import datetime, timedelta
from typing import Any, Callable

from kvscope.completion.registry import NUMERIC_TYPES, FunctionMetadata
from kvscope.errors import EvaluationError
from kvscope.nodes import type_tag

Predicate = Callable[[Any], Any]

_DURATION_RE = re.compile(r"(-?\d+(?:\.\d+)?)(h|ms|us|ns|m|s)")
_DURATION_UNITS = {
    "h": 3600.0,
    "m": 60.0,
    "s": 1.0,
    "ms": 1e-3,
    "us": 1e-6,
    "ns": 1e-9,
}


def _require(value: Any, fn: str, *tags: str) -> None:
    tag = type_tag(value)
    if tag not in tags:
        raise EvaluationError(f"{fn}() not supported on {tag}")


def _iter_items(receiver: Any, fn: str) -> list:
    # Macros over a map iterate its keys.
    if isinstance(receiver, dict):
        return list(receiver)
    if isinstance(receiver, (list, tuple)):
        return list(receiver)
    raise EvaluationError(f"{fn}() not supported on {type_tag(receiver)}")


def _truthy(value: Any, fn: str) -> bool:
    if not isinstance(value, bool):
        raise EvaluationError(f"{fn}() predicate must return bool, got {type_tag(value)}")
    return value


def fn_size(value: Any) -> int:
    _require(value, "size", "string", "bytes", "list", "map")
    return len(value)


def fn_contains(receiver: Any, needle: Any) -> bool:
    _require(receiver, "contains", "string", "list")
    return needle in receiver


def fn_starts_with(receiver: Any, prefix: str) -> bool:
    _require(receiver, "startsWith", "string")
    return receiver.startswith(prefix)


def fn_ends_with(receiver: Any, suffix: str) -> bool:
    _require(receiver, "endsWith", "string")
    return receiver.endswith(suffix)


def fn_matches(receiver: Any, pattern: str) -> bool:
    _require(receiver, "matches", "string")
    try:
        return re.search(pattern, receiver) is not None
    except re.error as exc:
        raise EvaluationError(f"invalid regex {pattern!r}: {exc}") from exc


def fn_lower(receiver: Any) -> str:
    _require(receiver, "lowerAscii", "string")
    return receiver.lower()


def fn_upper(receiver: Any) -> str:
    _require(receiver, "upperAscii", "string")
    return receiver.upper()


def fn_trim(receiver: Any) -> str:
    _require(receiver, "trim", "string")
    return receiver.strip()


def fn_split(receiver: Any, sep: str) -> list[str]:
    _require(receiver, "split", "string")
    if sep == "":
        return list(receiver)
    return receiver.split(sep)


def fn_replace(receiver: Any, old: str, new: str) -> str:
    _require(receiver, "replace", "string")
    return receiver.replace(old, new)


def fn_substring(receiver: Any, start: int, end: int | None = None) -> str:
    _require(receiver, "substring", "string")
    if start < 0 or start > len(receiver) or (end is not None and not start <= end <= len(receiver)):
        raise EvaluationError(f"substring index out of range for length {len(receiver)}")
    return receiver[start:end]


def fn_flatten(receiver: Any) -> list:
    _require(receiver, "flatten", "list")
    flat: list = []
    for item in receiver:
        if isinstance(item, (list, tuple)):
            flat.extend(item)
        else:
            flat.append(item)
    return flat


def fn_slice(receiver: Any, start: int, end: int | None = None) -> list:
    _require(receiver, "slice", "list")
    return list(receiver[start:end])


def fn_sort(receiver: Any) -> list:
    _require(receiver, "sort", "list")
    try:
        return sorted(receiver)
    except TypeError as exc:
        raise EvaluationError("sort() requires comparable elements") from exc


def fn_keys(receiver: Any) -> list:
    _require(receiver, "keys", "map")
    return list(receiver.keys())


def fn_values(receiver: Any) -> list:
    _require(receiver, "values", "map")
    return list(receiver.values())


def fn_abs(value: Any):
    _require(value, "abs", *NUMERIC_TYPES)
    return abs(value)


def fn_ceil(value: Any) -> int:
    _require(value, "ceil", *NUMERIC_TYPES)
    return math.ceil(value)


def fn_floor(value: Any) -> int:
    _require(value, "floor", *NUMERIC_TYPES)
    return math.floor(value)


def fn_round(value: Any) -> int:
    """Round half away from zero."""
    _require(value, "round", *NUMERIC_TYPES)
    if value < 0:
        return -math.floor(-value + 0.5)
    return math.floor(value + 0.5)


def fn_sqrt(value: Any) -> float:
    _require(value, "sqrt", *NUMERIC_TYPES)
    if value < 0:
        raise EvaluationError("sqrt() of negative number")
    return math.sqrt(value)


def fn_greatest(*values: Any):
    if len(values) == 1 and isinstance(values[0], (list, tuple)):
        values = tuple(values[0])
    if not values:
        raise EvaluationError("math.greatest() requires at least one argument")
    return max(values)


def fn_least(*values: Any):
    if len(values) == 1 and isinstance(values[0], (list, tuple)):
        values = tuple(values[0])
    if not values:
        raise EvaluationError("math.least() requires at least one argument")
    return min(values)


def fn_type(value: Any) -> str:
    return type_tag(value)


def fn_int(value: Any) -> int:
    if isinstance(value, bool):
        raise EvaluationError("int() not supported on bool")
    if isinstance(value, datetime):
        return int(value.timestamp())
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise EvaluationError(f"cannot convert {value!r} to int") from exc


def fn_uint(value: Any) -> int:
    result = fn_int(value)
    if result < 0:
        raise EvaluationError(f"uint() of negative value {result}")
    return result


def fn_double(value: Any) -> float:
    if isinstance(value, bool):
        raise EvaluationError("double() not supported on bool")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise EvaluationError(f"cannot convert {value!r} to double") from exc


def fn_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if value is None:
        return "null"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def fn_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise EvaluationError(f"cannot convert {value!r} to bool")


def fn_bytes(value: Any) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode("utf-8")
    raise EvaluationError(f"bytes() not supported on {type_tag(value)}")


def fn_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise EvaluationError(f"timestamp() not supported on {type_tag(value)}")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError as exc:
        raise EvaluationError(f"invalid timestamp {value!r}") from exc


def fn_duration(value: Any) -> timedelta:
    if isinstance(value, timedelta):
        return value
    if not isinstance(value, str):
        raise EvaluationError(f"duration() not supported on {type_tag(value)}")
    text = value.strip()
    sign = 1.0
    if text.startswith("-"):
        sign, text = -1.0, text[1:]
    parts = _DURATION_RE.findall(text)
    if not parts or "".join(n + u for n, u in parts) != text:
        raise EvaluationError(f"invalid duration {value!r}")
    seconds = sum(float(n) * _DURATION_UNITS[u] for n, u in parts)
    return timedelta(seconds=sign * seconds)


def fn_base64_encode(value: Any) -> str:
    return base64.b64encode(fn_bytes(value)).decode("ascii")


def fn_base64_decode(value: Any) -> bytes:
    if not isinstance(value, str):
        raise EvaluationError(f"base64.decode() not supported on {type_tag(value)}")
    text = value.strip()
    padded = text + "=" * (-len(text) % 4)
    try:
        if "-" in text or "_" in text:
            return base64.urlsafe_b64decode(padded)
        return base64.b64decode(padded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise EvaluationError(f"invalid base64 input: {exc}") from exc


def fn_json_decode(value: Any) -> Any:
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    if not isinstance(value, str):
        raise EvaluationError(f"json.decode() not supported on {type_tag(value)}")
    try:
        return json.loads(value)
    except json.JSONDecodeError as exc:
        raise EvaluationError(f"invalid JSON: {exc.msg}") from exc


def macro_filter(receiver: Any, predicate: Predicate) -> list:
    return [item for item in _iter_items(receiver, "filter") if _truthy(predicate(item), "filter")]


def macro_map(receiver: Any, predicate: Predicate) -> list:
    return [predicate(item) for item in _iter_items(receiver, "map")]


def macro_all(receiver: Any, predicate: Predicate) -> bool:
    return all(_truthy(predicate(item), "all") for item in _iter_items(receiver, "all"))


def macro_exists(receiver: Any, predicate: Predicate) -> bool:
    return any(_truthy(predicate(item), "exists") for item in _iter_items(receiver, "exists"))


def macro_exists_one(receiver: Any, predicate: Predicate) -> bool:
    matched = sum(1 for item in _iter_items(receiver, "exists_one") if _truthy(predicate(item), "exists_one"))
    return matched == 1


METHODS: dict[str, Callable[..., Any]] = {
    "size": fn_size,
    "contains": fn_contains,
    "startsWith": fn_starts_with,
    "endsWith": fn_ends_with,
    "matches": fn_matches,
    "lowerAscii": fn_lower,
    "upperAscii": fn_upper,
    "trim": fn_trim,
    "split": fn_split,
    "replace": fn_replace,
    "substring": fn_substring,
    "flatten": fn_flatten,
    "slice": fn_slice,
    "sort": fn_sort,
    "keys": fn_keys,
    "values": fn_values,
    "abs": fn_abs,
    "ceil": fn_ceil,
    "floor": fn_floor,
    "round": fn_round,
}

MACROS: dict[str, Callable[[Any, Predicate], Any]] = {
    "filter": macro_filter,
    "map": macro_map,
    "all": macro_all,
    "exists": macro_exists,
    "exists_one": macro_exists_one,
}

GLOBALS: dict[str, Callable[..., Any]] = {
    "size": fn_size,
    "type": fn_type,
    "int": fn_int,
    "uint": fn_uint,
    "double": fn_double,
    "string": fn_string,
    "bool": fn_bool,
    "bytes": fn_bytes,
    "timestamp": fn_timestamp,
    "duration": fn_duration,
    "math.abs": fn_abs,
    "math.ceil": fn_ceil,
    "math.floor": fn_floor,
    "math.round": fn_round,
    "math.sqrt": fn_sqrt,
    "math.greatest": fn_greatest,
    "math.least": fn_least,
    "base64.encode": fn_base64_encode,
    "base64.decode": fn_base64_decode,
    "json.decode": fn_json_decode,
}

# Globals evaluated lazily by the backend.
GLOBAL_MACROS = ("has",)

_STR = ("string",)
_LIST = ("list",)
_MAP = ("map",)
_COLL = ("list", "map")


def _method(name, category, signature, description, examples=(), receivers=(), returns="any"):
    return FunctionMetadata(name, category, True, signature, description, tuple(examples), tuple(receivers), returns)


def _global(name, category, signature, description, examples=(), receivers=(), returns="any"):
    return FunctionMetadata(name, category, False, signature, description, tuple(examples), tuple(receivers), returns)


CATALOG: tuple[FunctionMetadata, ...] = (
    _method("size", "general", "size()", "Number of elements, characters or bytes",
            ["_.items.size()", "\"hello\".size()"], ("string", "bytes", "list", "map"), "int"),
    _method("contains", "string", "contains(s)", "Whether the string contains s",
            ["_.name.contains(\"test\")"], ("string", "list"), "bool"),
    _method("startsWith", "string", "startsWith(prefix)", "Whether the string starts with prefix",
            ["_.name.startsWith(\"app\")"], _STR, "bool"),
    _method("endsWith", "string", "endsWith(suffix)", "Whether the string ends with suffix",
            ["_.file.endsWith(\".json\")"], _STR, "bool"),
    _method("matches", "regex", "matches(regex)", "Whether the string matches the regular expression",
            ["_.email.matches(\"^[a-z]+@\")"], _STR, "bool"),
    _method("lowerAscii", "string", "lowerAscii()", "Lowercase copy of the string",
            ["_.name.lowerAscii()"], _STR, "string"),
    _method("upperAscii", "string", "upperAscii()", "Uppercase copy of the string",
            ["_.name.upperAscii()"], _STR, "string"),
    _method("trim", "string", "trim()", "String with surrounding whitespace removed",
            ["_.name.trim()"], _STR, "string"),
    _method("split", "string", "split(sep)", "Split the string into a list on sep",
            ["_.path.split(\"/\")"], _STR, "list"),
    _method("replace", "string", "replace(old, new)", "Replace every occurrence of old with new",
            ["_.text.replace(\"a\", \"b\")"], _STR, "string"),
    _method("substring", "string", "substring(start, end)", "Characters from start up to end",
            ["_.text.substring(0, 5)"], _STR, "string"),
    _method("filter", "list", "filter(x, predicate)", "Elements (or map keys) for which predicate holds",
            ["_.items.filter(x, x.active)", "_.items.filter(x, x.price > 100)"], _COLL, "list"),
    _method("map", "list", "map(x, expr)", "Transform each element (or map key)",
            ["_.items.map(x, x.name)", "_.items.map(x, x.price * 2)"], _COLL, "list"),
    _method("all", "list", "all(x, predicate)", "Whether predicate holds for every element",
            ["_.items.all(x, x.price > 0)"], _COLL, "bool"),
    _method("exists", "list", "exists(x, predicate)", "Whether predicate holds for any element",
            ["_.items.exists(x, x.active)"], _COLL, "bool"),
    _method("exists_one", "list", "exists_one(x, predicate)", "Whether predicate holds for exactly one element",
            ["_.items.exists_one(x, x.id == 1)"], _COLL, "bool"),
    _method("flatten", "list", "flatten()", "Flatten one level of nested lists",
            ["_.nested.flatten()"], _LIST, "list"),
    _method("slice", "list", "slice(start, end)", "Sub-list from start up to end",
            ["_.items.slice(0, 3)"], _LIST, "list"),
    _method("sort", "list", "sort()", "Sorted copy of the list",
            ["_.tags.sort()"], _LIST, "list"),
    _method("keys", "map", "keys()", "Keys of the map", ["_.config.keys()"], _MAP, "list"),
    _method("values", "map", "values()", "Values of the map", ["_.config.values()"], _MAP, "list"),
    _method("abs", "math", "abs()", "Absolute value", ["_.delta.abs()"], NUMERIC_TYPES, "double"),
    _method("ceil", "math", "ceil()", "Round up to the nearest integer", ["_.price.ceil()"], NUMERIC_TYPES, "int"),
    _method("floor", "math", "floor()", "Round down to the nearest integer", ["_.price.floor()"], NUMERIC_TYPES, "int"),
    _method("round", "math", "round()", "Round half away from zero", ["_.price.round()"], NUMERIC_TYPES, "int"),
    _global("type", "conversion", "type(value)", "Type name of a value",
            ["type(_.items)"], (), "string"),
    _global("int", "conversion", "int(value)", "Convert to integer",
            ["int(\"42\")", "int(_.price)"], ("string", "double", "int", "uint", "timestamp"), "int"),
    _global("uint", "conversion", "uint(value)", "Convert to unsigned integer",
            ["uint(_.count)"], ("string", "double", "int", "uint"), "uint"),
    _global("double", "conversion", "double(value)", "Convert to floating point",
            ["double(\"3.14\")", "double(_.count)"], ("string", "double", "int", "uint"), "double"),
    _global("string", "conversion", "string(value)", "Convert to string",
            ["string(123)", "string(_.id)"], (), "string"),
    _global("bool", "conversion", "bool(value)", "Convert \"true\"/\"false\" to bool",
            ["bool(\"true\")"], ("string", "bool"), "bool"),
    _global("bytes", "conversion", "bytes(value)", "Convert a string to bytes",
            ["bytes(\"hello\")"], ("string", "bytes"), "bytes"),
    _global("has", "map", "has(field)", "Whether a field exists",
            ["has(_.field)", "has(_.config.debug)"], (), "bool"),
    _global("timestamp", "datetime", "timestamp(string)", "Parse an RFC 3339 timestamp",
            ["timestamp(\"2024-01-01T00:00:00Z\")"], ("string", "timestamp"), "timestamp"),
    _global("duration", "datetime", "duration(string)", "Parse a duration such as 1h30m",
            ["duration(\"1h\")", "duration(\"30s\")"], ("string", "duration"), "duration"),
    _global("math.abs", "math", "math.abs(number)", "Absolute value",
            ["math.abs(-5)", "math.abs(_.delta)"], NUMERIC_TYPES, "double"),
    _global("math.ceil", "math", "math.ceil(number)", "Round up", ["math.ceil(_.price)"], NUMERIC_TYPES, "int"),
    _global("math.floor", "math", "math.floor(number)", "Round down", ["math.floor(_.price)"], NUMERIC_TYPES, "int"),
    _global("math.round", "math", "math.round(number)", "Round half away from zero",
            ["math.round(_.price)"], NUMERIC_TYPES, "int"),
    _global("math.sqrt", "math", "math.sqrt(number)", "Square root",
            ["math.sqrt(16)", "math.sqrt(_.area)"], NUMERIC_TYPES, "double"),
    _global("math.greatest", "math", "math.greatest(a, b, ...)", "Largest of the arguments",
            ["math.greatest(1, 5, 3)", "math.greatest(_.scores)"], (), "any"),
    _global("math.least", "math", "math.least(a, b, ...)", "Smallest of the arguments",
            ["math.least(1, 5, 3)", "math.least(_.scores)"], (), "any"),
    _global("base64.encode", "encoding", "base64.encode(value)", "Base64-encode a string or bytes",
            ["base64.encode(\"hello\")"], ("string", "bytes"), "string"),
    _global("base64.decode", "encoding", "base64.decode(string)", "Decode a base64 string to bytes",
            ["base64.decode(\"aGVsbG8=\")", "string(base64.decode(_.blob))"], _STR, "bytes"),
    _global("json.decode", "encoding", "json.decode(string)", "Parse a JSON document",
            ["json.decode(_.payload)"], ("string", "bytes"), "any"),
)
