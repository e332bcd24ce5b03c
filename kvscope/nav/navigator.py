"""Resolve paths against a tree and track the current view."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Any

from kvscope.errors import NotFoundError
from kvscope.nav.path_model import ROOT, Index, Key, Path, Segment, build_with_key
from kvscope.nodes import NodeKind, kind_of, type_tag

if TYPE_CHECKING:
    from kvscope.decode.engine import DecodeEngine
    from kvscope.search.context import SearchContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NavigationState:
    """Current view. ``path`` is None for computed results with no parent."""
    root: Any
    path: Path | None
    node: Any


def resolve(root: Any, path: Path) -> Any:
    """Walk ``path`` from ``root`` and return the node it addresses.

    Raises:
        NotFoundError: naming the first segment that does not resolve. No
            partial result is returned.
    """
    node = root
    for depth, segment in enumerate(path.segments):
        prefix = Path(path.segments[:depth])
        kind = kind_of(node)
        if isinstance(segment, Key):
            if kind is not NodeKind.MAP:
                raise NotFoundError(
                    f"cannot look up key '{segment.name}' in {type_tag(node)} at {prefix}",
                    segment=segment, prefix=prefix,
                )
            if segment.name not in node:
                raise NotFoundError(
                    f"key '{segment.name}' not found at {prefix}",
                    segment=segment, prefix=prefix,
                )
            node = node[segment.name]
        else:
            if kind is not NodeKind.SEQUENCE:
                raise NotFoundError(
                    f"cannot index {type_tag(node)} with [{segment.value}] at {prefix}",
                    segment=segment, prefix=prefix,
                )
            if segment.value >= len(node):
                raise NotFoundError(
                    f"index {segment.value} out of range (len {len(node)}) at {prefix}",
                    segment=segment, prefix=prefix,
                )
            node = node[segment.value]
    return node


class Navigator:
    """Owns the NavigationState and keeps decode/search state in step with it."""

    def __init__(
        self,
        root: Any,
        decode_engine: DecodeEngine | None = None,
        search_context: SearchContext | None = None,
    ):
        self.decode_engine = decode_engine
        self.search_context = search_context
        self.state = NavigationState(root=root, path=ROOT, node=root)

    @property
    def root(self) -> Any:
        return self.state.root

    @property
    def path(self) -> Path | None:
        return self.state.path

    @property
    def node(self) -> Any:
        return self.state.node

    def replace_root(self, root: Any) -> NavigationState:
        """Install a mutated root and re-derive the current node from it."""
        path = self.state.path
        node = resolve(root, path) if path is not None else self.state.node
        self.state = NavigationState(root=root, path=path, node=node)
        return self.state

    def navigate_to(
        self, node: Any, path: Path | None, preserve_search: bool = False
    ) -> NavigationState:
        """Set the view directly to an already-computed node."""
        self.state = NavigationState(root=self.state.root, path=path, node=node)
        if self.decode_engine is not None:
            self.decode_engine.recompute(path, node)
        if self.search_context is not None and not preserve_search:
            self.search_context.clear()
        logger.debug("navigate_to %s (%s)", path, type_tag(node))
        return self.state

    def navigate_path(self, path: Path, preserve_search: bool = False) -> NavigationState:
        """Resolve ``path`` and move there; on NotFoundError the state is unchanged."""
        node = resolve(self.state.root, path)
        return self.navigate_to(node, path, preserve_search=preserve_search)

    def drill(self, segment: Segment | str | int) -> NavigationState:
        """Move one level down into the current node."""
        if self.state.path is None:
            raise NotFoundError("computed result has no addressable children path")
        return self.navigate_path(build_with_key(self.state.path, segment))

    def navigate_back(self, free_form: bool = False) -> NavigationState:
        """Pop the last segment.

        A no-op for free-form results (no parent path) and at the root; the
        caller falls back to its own history in that case.
        """
        path = self.state.path
        if free_form or path is None or path.is_root:
            return self.state
        return self.navigate_path(path.parent())


def child_segment(key: str | int) -> Segment:
    """Segment addressing a child yielded by :func:`kvscope.nodes.children`."""
    if isinstance(key, int) and not isinstance(key, bool):
        return Index(key)
    return Key(str(key))
