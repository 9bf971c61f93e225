"""Bidirectional display codecs derived from the Candid type tree.

``DisplayCodecBuilder.build(node)`` returns a :class:`Codec` whose ``decode``
turns a wire value into its display form and whose ``encode`` turns a display
value back into the wire form:

- ``int``/``nat`` and fixed-width integers wider than 32 bits <-> decimal strings
- ``principal`` <-> canonical text
- ``blob`` (``vec nat8``) -> lowercase hex up to 96 bytes, raw bytes beyond
- ``vec record {text; T}`` <-> ``dict``
- ``opt T`` (``[]``/``[x]``) <-> ``None``/``x``
- ``variant`` (``{"A": x}``) <-> ``{"_type": "A", "A": x}``
- records, tuples and vectors compose their children's codecs
"""

from __future__ import annotations

from collections import abc
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Mapping, TypeVar

from icreactor.candid.principal import Principal
from icreactor.candid.types import (
    FixedIntType,
    FixedNatType,
    FuncType,
    IdlType,
    OptType,
    RecordType,
    RecType,
    TupleType,
    TypeKind,
    VariantType,
    VecType,
)
from icreactor.utils.exceptions import CodecError
from icreactor.utils.helpers import DISCRIMINANT, bytes_to_hex, hex_to_bytes

W = TypeVar("W")
D = TypeVar("D")

# Blobs up to this many bytes are rendered as hex; longer ones pass through.
BLOB_HEX_THRESHOLD = 96

ShapeCheck = Callable[[Any], bool]


def _any(_value: Any) -> bool:
    return True


@dataclass(frozen=True, slots=True)
class Codec(Generic[W, D]):
    """Immutable (wire shape, display shape, decode, encode) quadruple."""

    name: str
    decode: Callable[[W], D]
    encode: Callable[[D], W]
    wire_shape: ShapeCheck = _any
    display_shape: ShapeCheck = _any
    # Per-arm codecs when the node is a variant.
    arms: Mapping[str, Codec] | None = field(default=None, compare=False)

    def is_wire(self, value: Any) -> bool:
        return self.wire_shape(value)

    def is_display(self, value: Any) -> bool:
        return self.display_shape(value)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_bytes_like(value: Any) -> bool:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return True
    return isinstance(value, list) and all(_is_int(b) and 0 <= b < 256 for b in value)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _identity(name: str, shape: ShapeCheck) -> Codec:
    def check(value: Any) -> Any:
        if not shape(value):
            raise CodecError(name, f"unexpected {type(value).__name__} value", value)
        return value

    return Codec(name, decode=check, encode=check, wire_shape=shape, display_shape=shape)


def _big_integer(name: str) -> Codec[int, str]:
    def decode(value: Any) -> str:
        if _is_int(value):
            return str(value)
        if isinstance(value, str):
            return value
        raise CodecError(name, f"expected an integer, got {type(value).__name__}", value)

    def encode(value: Any) -> int:
        if _is_int(value):
            return value
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError as exc:
                raise CodecError(name, f"{value!r} is not a decimal integer", value) from exc
        raise CodecError(name, f"expected a decimal string, got {type(value).__name__}", value)

    return Codec(name, decode=decode, encode=encode, wire_shape=_is_int, display_shape=lambda v: isinstance(v, str))


def _principal(name: str) -> Codec[Principal, str]:
    def decode(value: Any) -> str:
        if isinstance(value, Principal):
            return value.to_text()
        if isinstance(value, str):
            return value
        raise CodecError(name, f"expected a Principal, got {type(value).__name__}", value)

    def encode(value: Any) -> Principal:
        if isinstance(value, Principal):
            return value
        if isinstance(value, str):
            try:
                return Principal.from_text(value)
            except ValueError as exc:
                raise CodecError(name, str(exc), value) from exc
        raise CodecError(name, f"expected principal text, got {type(value).__name__}", value)

    return Codec(
        name,
        decode=decode,
        encode=encode,
        wire_shape=lambda v: isinstance(v, Principal),
        display_shape=lambda v: isinstance(v, str),
    )


def _blob(name: str) -> Codec[bytes, str | bytes]:
    def decode(value: Any) -> str | bytes:
        if not _is_bytes_like(value):
            raise CodecError(name, f"expected bytes, got {type(value).__name__}", value)
        raw = bytes(value)
        if len(raw) <= BLOB_HEX_THRESHOLD:
            return bytes_to_hex(raw)
        return value

    def encode(value: Any) -> bytes:
        if isinstance(value, str):
            try:
                return hex_to_bytes(value)
            except ValueError as exc:
                raise CodecError(name, f"{value!r} is not valid hex", value) from exc
        if _is_bytes_like(value):
            return bytes(value)
        raise CodecError(name, f"expected hex text or bytes, got {type(value).__name__}", value)

    return Codec(
        name,
        decode=decode,
        encode=encode,
        wire_shape=_is_bytes_like,
        display_shape=lambda v: isinstance(v, (str, bytes, bytearray, memoryview)),
    )


class _LazyArms(abc.Mapping):
    """Arm codecs of a recursive binding, resolved on first access."""

    def __init__(self, target: Callable[[], Codec]):
        self._target = target

    def _arms(self) -> Mapping[str, Codec]:
        return self._target().arms or {}

    def __getitem__(self, name: str) -> Codec:
        return self._arms()[name]

    def __iter__(self):
        return iter(self._arms())

    def __len__(self) -> int:
        return len(self._arms())


def _expect_sequence(name: str, value: Any) -> None:
    if not _is_sequence(value):
        raise CodecError(name, f"expected a sequence, got {type(value).__name__}", value)


def _expect_dict(name: str, value: Any) -> None:
    if not isinstance(value, dict):
        raise CodecError(name, f"expected an object, got {type(value).__name__}", value)


class DisplayCodecBuilder:
    """
    Turns type-tree nodes into display codecs.

    A builder memoizes recursive bindings by their id, so one builder per bound
    interface yields codecs that can be shared across calls.
    """

    def __init__(self) -> None:
        self._rec_cache: dict[int, Codec] = {}
        self._handlers: dict[TypeKind, Callable[[Any], Codec]] = {
            TypeKind.BOOL: lambda t: _identity(t.name, lambda v: isinstance(v, bool)),
            TypeKind.NULL: lambda t: _identity(t.name, lambda v: v is None),
            TypeKind.TEXT: lambda t: _identity(t.name, lambda v: isinstance(v, str)),
            TypeKind.FLOAT: lambda t: _identity(t.name, _is_number),
            TypeKind.RESERVED: lambda t: _identity(t.name, _any),
            TypeKind.EMPTY: self._empty,
            TypeKind.INT: lambda t: _big_integer(t.name),
            TypeKind.NAT: lambda t: _big_integer(t.name),
            TypeKind.FIXED_INT: self._fixed_width,
            TypeKind.FIXED_NAT: self._fixed_width,
            TypeKind.PRINCIPAL: lambda t: _principal(t.name),
            TypeKind.SERVICE: lambda t: _principal(t.name),
            TypeKind.VEC: self._vec,
            TypeKind.OPT: self._opt,
            TypeKind.RECORD: self._record,
            TypeKind.TUPLE: self._tuple,
            TypeKind.VARIANT: self._variant,
            TypeKind.REC: self._rec,
            TypeKind.FUNC: self._func,
        }

    def build(self, node: IdlType) -> Codec:
        handler = self._handlers.get(node.kind)
        if handler is None:
            raise TypeError(f"no display codec for type kind {node.kind!r}")
        return handler(node)

    @staticmethod
    def _empty(t: IdlType) -> Codec:
        def reject(value: Any) -> Any:
            raise CodecError(t.name, "the empty type has no values", value)

        return Codec(t.name, decode=reject, encode=reject, wire_shape=lambda v: False, display_shape=lambda v: False)

    @staticmethod
    def _fixed_width(t: FixedIntType | FixedNatType) -> Codec:
        if t.bits <= 32:
            return _identity(t.name, _is_int)
        return _big_integer(t.name)

    def _vec(self, t: VecType) -> Codec:
        if t.is_blob():
            return _blob("blob")

        elem = t.elem
        elem_codec = self.build(elem)

        if isinstance(elem, TupleType) and len(elem.components) == 2 and elem.components[0].kind is TypeKind.TEXT:
            return self._association_list(t.name, elem_codec)

        def decode(value: Any) -> list:
            _expect_sequence(t.name, value)
            return [elem_codec.decode(item) for item in value]

        def encode(value: Any) -> list:
            _expect_sequence(t.name, value)
            return [elem_codec.encode(item) for item in value]

        return Codec(t.name, decode=decode, encode=encode, wire_shape=_is_sequence, display_shape=_is_sequence)

    @staticmethod
    def _association_list(name: str, pair_codec: Codec) -> Codec:
        def decode(value: Any) -> dict:
            _expect_sequence(name, value)
            return dict(pair_codec.decode(pair) for pair in value)

        def encode(value: Any) -> list:
            pairs = list(value.items()) if isinstance(value, dict) else value
            _expect_sequence(name, pairs)
            return [pair_codec.encode(pair) for pair in pairs]

        return Codec(
            name,
            decode=decode,
            encode=encode,
            wire_shape=_is_sequence,
            display_shape=lambda v: isinstance(v, dict) or _is_sequence(v),
        )

    def _opt(self, t: OptType) -> Codec:
        elem_codec = self.build(t.elem)

        def decode(value: Any) -> Any:
            _expect_sequence(t.name, value)
            if len(value) == 0:
                return None
            if len(value) > 1:
                raise CodecError(t.name, f"optional holds {len(value)} elements", value)
            return elem_codec.decode(value[0])

        def encode(value: Any) -> list:
            if value is None:
                return []
            return [elem_codec.encode(value)]

        return Codec(
            t.name,
            decode=decode,
            encode=encode,
            wire_shape=lambda v: _is_sequence(v) and len(v) <= 1,
        )

    def _record(self, t: RecordType) -> Codec:
        fields = [(name, self.build(field_type)) for name, field_type in t.fields]

        def decode(value: Any) -> dict:
            _expect_dict(t.name, value)
            out = {}
            for name, codec in fields:
                if name not in value:
                    raise CodecError(t.name, f"missing field {name!r}", value)
                out[name] = codec.decode(value[name])
            return out

        def encode(value: Any) -> dict:
            _expect_dict(t.name, value)
            return {name: codec.encode(value.get(name)) for name, codec in fields}

        is_dict: ShapeCheck = lambda v: isinstance(v, dict)
        return Codec(t.name, decode=decode, encode=encode, wire_shape=is_dict, display_shape=is_dict)

    def _tuple(self, t: TupleType) -> Codec:
        components = [self.build(c) for c in t.components]

        def check_arity(value: Any) -> None:
            _expect_sequence(t.name, value)
            if len(value) != len(components):
                raise CodecError(t.name, f"expected {len(components)} components, got {len(value)}", value)

        def decode(value: Any) -> list:
            check_arity(value)
            return [codec.decode(item) for codec, item in zip(components, value)]

        def encode(value: Any) -> tuple:
            check_arity(value)
            return tuple(codec.encode(item) for codec, item in zip(components, value))

        return Codec(
            t.name,
            decode=decode,
            encode=encode,
            wire_shape=lambda v: isinstance(v, tuple),
            display_shape=lambda v: isinstance(v, list),
        )

    def _variant(self, t: VariantType) -> Codec:
        arms = {name: self.build(arm_type) for name, arm_type in t.fields}
        null_arms = {name for name, arm_type in t.fields if arm_type.kind is TypeKind.NULL}

        def decode(value: Any) -> dict:
            _expect_dict(t.name, value)
            if len(value) != 1:
                raise CodecError(t.name, f"variant must have exactly one key, found {list(value)}", value)
            key, payload = next(iter(value.items()))
            if key not in arms:
                raise CodecError(t.name, f"unknown variant arm {key!r}", value)
            if key in null_arms:
                return {DISCRIMINANT: key}
            return {DISCRIMINANT: key, key: arms[key].decode(payload)}

        def encode(value: Any) -> dict:
            _expect_dict(t.name, value)
            key = value.get(DISCRIMINANT)
            if key not in arms:
                raise CodecError(t.name, f"unknown variant discriminant {key!r}", value)
            if key in null_arms:
                return {key: None}
            return {key: arms[key].encode(value.get(key))}

        return Codec(
            t.name,
            decode=decode,
            encode=encode,
            wire_shape=lambda v: isinstance(v, dict) and len(v) == 1,
            display_shape=lambda v: isinstance(v, dict) and DISCRIMINANT in v,
            arms=arms,
        )

    def _rec(self, t: RecType) -> Codec:
        cached = self._rec_cache.get(t.id)
        if cached is not None:
            return cached

        resolved: list[Codec] = []

        def target() -> Codec:
            if not resolved:
                resolved.append(self.build(t.inner))
            return resolved[0]

        lazy = Codec(
            t.name,
            decode=lambda value: target().decode(value),
            encode=lambda value: target().encode(value),
            arms=_LazyArms(target),
        )
        self._rec_cache[t.id] = lazy
        return lazy

    @staticmethod
    def _func(t: FuncType) -> Codec:
        principal = _principal("func")

        def decode(value: Any) -> list:
            if not _is_sequence(value) or len(value) != 2:
                raise CodecError("func", "expected a (principal, method) pair", value)
            target, method = value
            return [principal.decode(target), str(method)]

        def encode(value: Any) -> tuple:
            if not _is_sequence(value) or len(value) != 2:
                raise CodecError("func", "expected a [principal text, method] pair", value)
            target, method = value
            return (principal.encode(target), str(method))

        return Codec(t.name, decode=decode, encode=encode, wire_shape=lambda v: isinstance(v, tuple))


@dataclass(frozen=True, slots=True)
class ActorDisplayCodec(Generic[W, D]):
    """A codec plus the ``as_display``/``as_candid`` spelling used by callers."""

    codec: Codec[W, D]

    def as_display(self, value: W) -> D:
        return self.codec.decode(value)

    def as_candid(self, value: D) -> W:
        return self.codec.encode(value)


def did_to_display_codec(did_type: IdlType, builder: DisplayCodecBuilder | None = None) -> ActorDisplayCodec:
    builder = builder or DisplayCodecBuilder()
    return ActorDisplayCodec(builder.build(did_type))


def did_to_display_codecs(did_types: Mapping[str, IdlType]) -> dict[str, ActorDisplayCodec]:
    builder = DisplayCodecBuilder()
    return {name: did_to_display_codec(t, builder) for name, t in did_types.items()}
