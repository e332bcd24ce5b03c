"""Detection of serialized values embedded in string scalars.

Kinds are tried in a fixed order and the first one that applies wins:

1. token: three dot-separated base64url segments (``header.payload.signature``)
   whose first two segments are JSON objects
2. json: a bare JSON object or array
3. yaml, toml, ndjson: structured text that parses to a map or list
4. base64: standard or url-safe base64; JSON and printable text are unwrapped,
   anything else is kept as raw bytes
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from enum import Enum
import json
import logging
import re
from typing import Any

from kvscope.loader import parse_structured
from kvscope.nodes import is_composite

logger = logging.getLogger(__name__)

_B64URL_SEGMENT = re.compile(r"[A-Za-z0-9_-]+={0,2}")
_B64_TEXT = re.compile(r"(?:[A-Za-z0-9+/]+|[A-Za-z0-9_-]+)={0,2}")
MIN_BASE64_LENGTH = 8
MIN_BINARY_BASE64_LENGTH = 16


class DecodeKind(str, Enum):
    TOKEN = "token"
    JSON = "json"
    YAML = "yaml"
    TOML = "toml"
    NDJSON = "ndjson"
    BASE64 = "base64"


@dataclass(frozen=True)
class Decoded:
    kind: DecodeKind
    value: Any


def _b64url(segment: str) -> bytes | None:
    if not _B64URL_SEGMENT.fullmatch(segment):
        return None
    stripped = segment.rstrip("=")
    padded = stripped + "=" * (-len(stripped) % 4)
    try:
        return base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError):
        return None


def _json_object(raw: bytes) -> dict | None:
    try:
        value = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def _decode_token(text: str) -> dict | None:
    text = text.strip()
    if text.startswith("Bearer "):
        text = text[len("Bearer "):].strip()
    parts = text.split(".")
    if len(parts) != 3 or not all(parts):
        return None
    raw = [_b64url(p) for p in parts]
    if any(r is None for r in raw):
        return None
    header = _json_object(raw[0])
    payload = _json_object(raw[1])
    if header is None or payload is None:
        return None
    # signature bytes are binary; keep the encoded segment as-is
    return {"header": header, "payload": payload, "signature": parts[2]}


def _decode_json(text: str) -> Any:
    stripped = text.strip()
    if not stripped or stripped[0] not in "{[":
        return None
    try:
        value = json.loads(stripped)
    except ValueError:
        return None
    return value if is_composite(value) else None


def _decode_base64(text: str) -> Any:
    stripped = text.strip()
    if len(stripped) < MIN_BASE64_LENGTH or not _B64_TEXT.fullmatch(stripped):
        return None
    body = stripped.rstrip("=")
    padded = body + "=" * (-len(body) % 4)
    try:
        if "-" in body or "_" in body:
            raw = base64.urlsafe_b64decode(padded)
        else:
            raw = base64.b64decode(padded, validate=True)
    except (binascii.Error, ValueError):
        return None
    try:
        decoded = raw.decode("utf-8")
    except UnicodeDecodeError:
        return _binary(stripped, raw)
    nested = _decode_json(decoded)
    if nested is not None:
        return nested
    if not decoded or not all(ch.isprintable() or ch in "\r\n\t" for ch in decoded):
        return _binary(stripped, raw)
    return {"encoding": "base64", "text": decoded}


def _binary(text: str, raw: bytes) -> dict | None:
    # Raw bytes only come from long strings mixing cases and digits or symbols;
    # plain words such as "password" are valid base64 as well.
    if len(text) < MIN_BINARY_BASE64_LENGTH:
        return None
    if not (any(ch.isupper() for ch in text) and any(ch.islower() for ch in text)):
        return None
    if not any(ch.isdigit() or ch in "+/=-_" for ch in text):
        return None
    return {"encoding": "base64", "size": len(raw), "hex": raw.hex()}


def _decode_structured(text: str) -> Decoded | None:
    found = parse_structured(text)
    if found is None:
        return None
    fmt, value = found
    return Decoded(kind=DecodeKind(fmt), value=value)


_DECODERS = (
    (DecodeKind.TOKEN, _decode_token),
    (DecodeKind.JSON, _decode_json),
)


def decode_value(value: Any) -> Decoded | None:
    """Decode a string scalar into a composite, or return None."""
    if not isinstance(value, str) or not value.strip():
        return None
    decoded = None
    for kind, decoder in _DECODERS:
        result = decoder(value)
        if result is not None:
            decoded = Decoded(kind=kind, value=result)
            break
    if decoded is None:
        decoded = _decode_structured(value)
    if decoded is None:
        result = _decode_base64(value)
        if result is not None:
            decoded = Decoded(kind=DecodeKind.BASE64, value=result)
    if decoded is not None:
        logger.debug("decoded %d chars as %s", len(value), decoded.kind.value)
    return decoded


def detect_decodable(value: Any) -> DecodeKind | None:
    """Return the kind of serialized data held by ``value``; None for plain strings."""
    decoded = decode_value(value)
    return decoded.kind if decoded is not None else None
