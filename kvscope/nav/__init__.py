"""Path model and navigator."""

from .navigator import NavigationState, Navigator, child_segment, resolve
from .path_model import (
    ROOT,
    ROOT_ALIAS,
    Index,
    Key,
    Path,
    Segment,
    build_with_key,
    format_path,
    needs_quoting,
    parse_path,
    segment_label,
    unquote_segment,
)

__all__ = [
    "ROOT",
    "ROOT_ALIAS",
    "Index",
    "Key",
    "NavigationState",
    "Navigator",
    "Path",
    "Segment",
    "build_with_key",
    "child_segment",
    "format_path",
    "needs_quoting",
    "parse_path",
    "resolve",
    "segment_label",
    "unquote_segment",
]
