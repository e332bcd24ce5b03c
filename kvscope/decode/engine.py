"""In-place decoding of string scalars and the decode-point scope rule."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

from kvscope.decode.detect import Decoded, DecodeKind, decode_value
from kvscope.nav.navigator import resolve
from kvscope.nav.path_model import Index, Key, Path
from kvscope.nodes import NodeKind, is_composite, kind_of

logger = logging.getLogger(__name__)

DEFAULT_MAX_DECODE_DEPTH = 20


@dataclass(frozen=True)
class DecodeState:
    """Single tracked decode point; ``decode_point`` is None when inactive."""
    active: bool = False
    decode_point: Path | None = None


INACTIVE = DecodeState()


def recompute_decode_state(path: Path | None, node: Any, decode_point: Path | None) -> DecodeState:
    """Apply the scope rule for the view at ``path`` showing ``node``.

    Active when the decode point is the root, when the view is the decoded
    composite itself, or when the view is strictly below the decode point.
    """
    if decode_point is None:
        return INACTIVE
    active = DecodeState(active=True, decode_point=decode_point)
    if decode_point.is_root:
        return active
    if path is None:
        return INACTIVE
    if path == decode_point:
        return active if is_composite(node) else INACTIVE
    if path.is_strict_descendant_of(decode_point):
        return active
    return INACTIVE


def recursive_decode_all(node: Any, max_depth: int = DEFAULT_MAX_DECODE_DEPTH) -> Any:
    """Return a copy of the tree with every decodable scalar expanded.

    Decoded structures are walked again so nested encodings unfold too.
    """
    return _decode_all(node, 0, max_depth)


def _decode_all(node: Any, depth: int, max_depth: int) -> Any:
    if depth > max_depth:
        return node
    kind = kind_of(node)
    if kind is NodeKind.MAP:
        return {k: _decode_all(v, depth + 1, max_depth) for k, v in node.items()}
    if kind is NodeKind.SEQUENCE:
        return [_decode_all(v, depth + 1, max_depth) for v in node]
    decoded = decode_value(node)
    if decoded is None:
        return node
    return _decode_all(decoded.value, depth + 1, max_depth)


class DecodeEngine:
    """Performs one-way scalar -> composite replacement and tracks the decode point."""

    def __init__(self, allow_decode: bool = True, max_depth: int = DEFAULT_MAX_DECODE_DEPTH):
        self.allow_decode = allow_decode
        self.max_depth = max_depth
        self.state = INACTIVE
        self.last_decoded: Decoded | None = None

    @property
    def active(self) -> bool:
        return self.state.active

    @property
    def decode_point(self) -> Path | None:
        return self.state.decode_point

    def detect(self, value: Any) -> DecodeKind | None:
        if not self.allow_decode:
            return None
        decoded = decode_value(value)
        return decoded.kind if decoded is not None else None

    def hint(self, node: Any) -> bool:
        """Whether a decode action on ``node`` would do anything."""
        return self.detect(node) is not None

    def decode_at(self, root: Any, path: Path) -> Any:
        """Replace the string scalar at ``path`` with its decoded structure.

        Returns the (possibly new) root. Non-string nodes and plain strings
        leave the tree untouched and the decode point unchanged.
        """
        self.last_decoded = None
        if not self.allow_decode:
            return root
        node = resolve(root, path)
        if not isinstance(node, str):
            return root
        decoded = decode_value(node)
        if decoded is None:
            return root

        if path.is_root:
            new_root = decoded.value
        else:
            parent = resolve(root, path.parent())
            last = path.last
            if isinstance(last, Key) and isinstance(parent, dict):
                parent[last.name] = decoded.value
            elif isinstance(last, Index) and isinstance(parent, list):
                parent[last.value] = decoded.value
            else:
                logger.debug("parent of %s is immutable, skipping decode", path)
                return root
            new_root = root

        self.last_decoded = decoded
        self.state = DecodeState(active=True, decode_point=path)
        logger.debug("decoded %s as %s", path, decoded.kind.value)
        return new_root

    def decode_all(self, root: Any) -> Any:
        """Eager mode: expand the whole tree; no decode point is tracked afterwards."""
        self.state = INACTIVE
        if not self.allow_decode:
            return root
        return recursive_decode_all(root, self.max_depth)

    def recompute(self, path: Path | None, node: Any) -> DecodeState:
        self.state = recompute_decode_state(path, node, self.state.decode_point)
        return self.state

    def reset(self) -> None:
        self.state = INACTIVE
        self.last_decoded = None
