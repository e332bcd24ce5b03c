"""Decoding of serialized values found in string scalars."""

from .detect import Decoded, DecodeKind, decode_value, detect_decodable
from .engine import (
    INACTIVE,
    DecodeEngine,
    DecodeState,
    recompute_decode_state,
    recursive_decode_all,
)

__all__ = [
    "INACTIVE",
    "DecodeEngine",
    "DecodeKind",
    "DecodeState",
    "Decoded",
    "decode_value",
    "detect_decodable",
    "recompute_decode_state",
    "recursive_decode_all",
]
