"""Small helpers shared across icreactor: stable keys, hex, LEB128."""

from __future__ import annotations

import json
import math
from typing import Any

# Field carrying the active arm name of a display-shaped variant.
DISCRIMINANT = "_type"


def bytes_to_hex(data: bytes | bytearray | memoryview | list[int]) -> str:
    """Lowercase hex without prefix."""
    return bytes(data).hex()


def hex_to_bytes(text: str) -> bytes:
    """Parse hex text, tolerating a leading ``0x``."""
    if text.startswith(("0x", "0X")):
        text = text[2:]
    if len(text) % 2:
        text = "0" + text
    return bytes.fromhex(text)


def _plain(value: Any) -> Any:
    """Map wire-only Python values to JSON-friendly ones."""
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes_to_hex(value)
    to_text = getattr(value, "to_text", None)
    if callable(to_text):
        return to_text()
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def json_to_string(value: Any) -> str:
    """Serialize for messages; integers are rendered as decimal strings."""
    return json.dumps(_plain(value), indent=2, ensure_ascii=False, default=str)


def stringify_stable(value: Any) -> str:
    """
    Deterministic string form of any value.

    Dict keys are sorted. Integers, byte strings and non-finite floats are
    rendered as tagged strings (``"[int:5]"``, ``"[bytes:0102]"``, ``"[NaN]"``)
    so they never collide with plain text, and equal arguments always produce
    the same key regardless of construction order.
    """

    seen: set[int] = set()

    def _norm(v: Any) -> Any:
        if v is None:
            return "[null]"
        if isinstance(v, bool):
            return v
        if isinstance(v, int):
            return f"[int:{v}]"
        if isinstance(v, float):
            if math.isnan(v):
                return "[NaN]"
            if math.isinf(v):
                return "[Infinity]" if v > 0 else "[-Infinity]"
            return v
        if isinstance(v, (bytes, bytearray, memoryview)):
            return f"[bytes:{bytes_to_hex(v)}]"
        to_text = getattr(v, "to_text", None)
        if callable(to_text):
            return to_text()
        if isinstance(v, (dict, list, tuple, set, frozenset)):
            if id(v) in seen:
                return "[Circular]"
            seen.add(id(v))
            try:
                if isinstance(v, dict):
                    return {str(k): _norm(v[k]) for k in sorted(v, key=str)}
                if isinstance(v, (set, frozenset)):
                    return sorted((_norm(x) for x in v), key=repr)
                return [_norm(x) for x in v]
            finally:
                seen.discard(id(v))
        if callable(v):
            return getattr(v, "__qualname__", repr(v))
        return v if isinstance(v, str) else str(v)

    return json.dumps(_norm(value), separators=(",", ":"), ensure_ascii=False)


def generate_key(args: Any) -> str:
    """Argument component of a request cache key."""
    return stringify_stable(args)


def create_simple_hash(value: Any, length: int = 8) -> str:
    """Short 32-bit hex hash of the stable form of ``value``."""
    h = 0
    for ch in stringify_stable(value):
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 1 << 32
    return format(abs(h), "x").rjust(length, "0")


def decode_leb128(data: bytes) -> int:
    """Decode an unsigned LEB128 integer."""
    result = 0
    shift = 0
    for byte in data:
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result
        shift += 7
    if not data:
        raise ValueError("empty LEB128 buffer")
    raise ValueError("unterminated LEB128 buffer")
