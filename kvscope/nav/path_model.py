"""Textual addresses for nodes in a tree.

Canonical form is the root alias ``_`` followed by segments::

    _.regions.asia.countries[0]["postal-code"]

Plain identifier keys use dot form, every other key is bracket-quoted, indices
use ``[n]``. ``parse_path(format_path(p)) == p`` holds for every path.
"""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Union

from kvscope.errors import MalformedPathError

ROOT_ALIAS = "_"

_PLAIN_KEY = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


@dataclass(frozen=True)
class Key:
    """Map key segment."""
    name: str

    def __str__(self) -> str:
        return format_segment(self)


@dataclass(frozen=True)
class Index:
    """Sequence index segment."""
    value: int

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError(f"index must be >= 0, got {self.value}")

    def __str__(self) -> str:
        return format_segment(self)


Segment = Union[Key, Index]


@dataclass(frozen=True)
class Path:
    """Ordered sequence of segments below the implicit root."""
    segments: tuple[Segment, ...] = ()

    def __str__(self) -> str:
        return format_path(self)

    def __len__(self) -> int:
        return len(self.segments)

    @property
    def is_root(self) -> bool:
        return not self.segments

    @property
    def last(self) -> Segment | None:
        return self.segments[-1] if self.segments else None

    def child(self, segment: Segment) -> Path:
        return Path(self.segments + (segment,))

    def join(self, other: Path) -> Path:
        return Path(self.segments + other.segments)

    def parent(self) -> Path:
        """Drop the last segment; the root is its own parent."""
        return Path(self.segments[:-1])

    def startswith(self, other: Path) -> bool:
        """True when ``other`` is this path or one of its ancestors."""
        n = len(other.segments)
        return self.segments[:n] == other.segments

    def is_strict_descendant_of(self, other: Path) -> bool:
        return len(self.segments) > len(other.segments) and self.startswith(other)

    def relative_to(self, base: Path) -> Path:
        if not self.startswith(base):
            raise ValueError(f"{self} is not below {base}")
        return Path(self.segments[len(base.segments):])


ROOT = Path()


def needs_quoting(key: str) -> bool:
    """Keys that are not plain identifiers must be written as ``["..."]``."""
    return _PLAIN_KEY.fullmatch(key) is None


def _escape(name: str) -> str:
    return name.replace("\\", "\\\\").replace('"', '\\"')


def format_segment(segment: Segment, leading_dot: bool = True) -> str:
    if isinstance(segment, Index):
        return f"[{segment.value}]"
    if needs_quoting(segment.name):
        return f'["{_escape(segment.name)}"]'
    return f".{segment.name}" if leading_dot else segment.name


def segment_label(segment: Segment) -> str:
    """Label shown in key columns: ``name``, ``["a.b"]`` or ``[3]``."""
    return format_segment(segment, leading_dot=False)


def format_path(path: Path) -> str:
    return ROOT_ALIAS + "".join(format_segment(s) for s in path.segments)


def unquote_segment(token: str) -> str:
    """Strip one matching pair of surrounding double quotes.

    A lone quote with no partner is returned unchanged.
    """
    if len(token) >= 2 and token.startswith('"') and token.endswith('"'):
        return token[1:-1]
    return token


def _is_index(token: str) -> bool:
    return token.isascii() and token.isdigit()


def _plain_segment(name: str) -> Segment:
    # items.0 is accepted as items[0]
    if _is_index(name):
        return Index(int(name))
    return Key(name)


def _read_plain(text: str, start: int) -> int:
    end = start
    while end < len(text) and text[end] not in ".[]":
        end += 1
    return end


def _parse_bracket(text: str, start: int) -> tuple[Segment, int]:
    """Parse ``[...]`` beginning at ``start``; return the segment and next offset."""
    inner = start + 1
    n = len(text)
    if inner < n and text[inner] == '"':
        pos = inner + 1
        buf: list[str] = []
        while pos < n:
            ch = text[pos]
            if ch == "\\" and pos + 1 < n:
                buf.append(text[pos + 1])
                pos += 2
                continue
            if ch == '"':
                break
            buf.append(ch)
            pos += 1
        if pos + 1 < n and text[pos] == '"' and text[pos + 1] == "]":
            return Key("".join(buf)), pos + 2
        # unmatched quote: fall through and keep the token literally

    close = text.find("]", inner)
    if close == -1:
        raise MalformedPathError(f"unbalanced '[' at offset {start}", text, start)
    token = text[inner:close]
    if token == "":
        raise MalformedPathError(f"empty brackets at offset {start}", text, start)
    if _is_index(token):
        return Index(int(token)), close + 1
    return Key(unquote_segment(token)), close + 1


def parse_path(text: str) -> Path:
    """Parse a dotted/bracketed address.

    The leading root alias is optional (``items[0]`` == ``_.items[0]``).

    Raises:
        MalformedPathError: unbalanced brackets, ``[]``, or an empty dotted
            segment such as ``a..b``.
    """
    s = text.strip()
    if s in ("", ROOT_ALIAS):
        return ROOT

    pos = 0
    if s.startswith(ROOT_ALIAS) and s[1] in ".[":
        pos = 1
    start = pos
    segments: list[Segment] = []
    n = len(s)

    while pos < n:
        ch = s[pos]
        if ch == ".":
            end = _read_plain(s, pos + 1)
            name = s[pos + 1:end]
            if not name:
                raise MalformedPathError(f"empty segment at offset {pos}", s, pos)
            segments.append(_plain_segment(name))
            pos = end
        elif ch == "[":
            segment, pos = _parse_bracket(s, pos)
            segments.append(segment)
        elif ch == "]":
            raise MalformedPathError(f"unbalanced ']' at offset {pos}", s, pos)
        elif pos == start:
            end = _read_plain(s, pos)
            segments.append(_plain_segment(s[pos:end]))
            pos = end
        else:
            raise MalformedPathError(f"expected '.' or '[' at offset {pos}", s, pos)

    return Path(tuple(segments))


def build_with_key(base: Path, segment: Segment | str | int) -> Path:
    """Append a segment given as a Segment, an index, or a key/label token.

    String tokens accept the labels produced by :func:`segment_label`
    (``name``, ``["a.b"]``, ``[3]``) as well as raw keys; a key that contains
    ``.`` stays a single segment and formats bracket-quoted.
    """
    if isinstance(segment, (Key, Index)):
        return base.child(segment)
    if isinstance(segment, int) and not isinstance(segment, bool):
        return base.child(Index(segment))
    token = str(segment)
    if token.startswith("[") and token.endswith("]") and len(token) > 2:
        parsed, end = _parse_bracket(token, 0)
        if end == len(token):
            return base.child(parsed)
    return base.child(Key(unquote_segment(token)))
