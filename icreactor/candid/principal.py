"""Principal: the binary-addressed identity of a canister or caller."""

from __future__ import annotations

import base64
import zlib
from typing import Any

MAX_LENGTH_IN_BYTES = 29
_ANONYMOUS_SUFFIX = 4


class Principal:
    """Immutable principal id with its canonical textual form."""

    __slots__ = ("_raw",)

    def __init__(self, raw: bytes = b""):
        raw = bytes(raw)
        if len(raw) > MAX_LENGTH_IN_BYTES:
            raise ValueError(f"principal is longer than {MAX_LENGTH_IN_BYTES} bytes")
        self._raw = raw

    @classmethod
    def management_canister(cls) -> Principal:
        return cls(b"")

    @classmethod
    def anonymous(cls) -> Principal:
        return cls(bytes([_ANONYMOUS_SUFFIX]))

    @classmethod
    def from_hex(cls, text: str) -> Principal:
        return cls(bytes.fromhex(text))

    @classmethod
    def from_text(cls, text: str) -> Principal:
        """Parse the canonical dash-grouped base32 form, verifying its checksum."""
        canonical = text.strip().lower()
        compact = canonical.replace("-", "")
        padded = compact.upper() + "=" * (-len(compact) % 8)
        try:
            decoded = base64.b32decode(padded)
        except (ValueError, TypeError) as exc:
            raise ValueError(f"invalid principal text: {text!r}") from exc
        if len(decoded) < 4:
            raise ValueError(f"invalid principal text: {text!r}")
        principal = cls(decoded[4:])
        if principal.to_text() != canonical:
            raise ValueError(
                f"principal {text!r} does not have a valid checksum "
                f"(expected {principal.to_text()!r})"
            )
        return principal

    @classmethod
    def from_value(cls, value: Any) -> Principal:
        """Accept a Principal, its text form or raw bytes."""
        if isinstance(value, Principal):
            return value
        if isinstance(value, str):
            return cls.from_text(value)
        if isinstance(value, (bytes, bytearray, memoryview)):
            return cls(bytes(value))
        raise TypeError(f"cannot build a Principal from {type(value).__name__}")

    @property
    def raw(self) -> bytes:
        return self._raw

    def is_anonymous(self) -> bool:
        return self._raw == bytes([_ANONYMOUS_SUFFIX])

    def to_text(self) -> str:
        checksum = zlib.crc32(self._raw).to_bytes(4, "big")
        encoded = base64.b32encode(checksum + self._raw).decode("ascii").lower().rstrip("=")
        return "-".join(encoded[i : i + 5] for i in range(0, len(encoded), 5))

    def to_hex(self) -> str:
        return self._raw.hex().upper()

    def __str__(self) -> str:
        return self.to_text()

    def __repr__(self) -> str:
        return f"Principal({self.to_text()!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Principal) and other._raw == self._raw

    def __hash__(self) -> int:
        return hash(("principal", self._raw))

    def __bytes__(self) -> bytes:
        return self._raw
