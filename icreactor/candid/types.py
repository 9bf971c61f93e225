"""Candid type tree: a closed set of node kinds describing canister interfaces.

Every node exposes ``kind`` so that consumers dispatch over a finite,
enumerable set instead of double-dispatching through visitor methods.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Iterable, Mapping


class TypeKind(str, Enum):
    BOOL = "bool"
    NULL = "null"
    TEXT = "text"
    FLOAT = "float"
    INT = "int"
    NAT = "nat"
    FIXED_INT = "fixed_int"
    FIXED_NAT = "fixed_nat"
    PRINCIPAL = "principal"
    VEC = "vec"
    OPT = "opt"
    RECORD = "record"
    TUPLE = "tuple"
    VARIANT = "variant"
    REC = "rec"
    FUNC = "func"
    SERVICE = "service"
    RESERVED = "reserved"
    EMPTY = "empty"


QUERY_ANNOTATIONS = frozenset({"query", "composite_query"})


class IdlType:
    """Base class of every type-tree node."""

    kind: ClassVar[TypeKind]

    @property
    def name(self) -> str:
        return self.kind.value

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True, slots=True)
class BoolType(IdlType):
    kind: ClassVar[TypeKind] = TypeKind.BOOL


@dataclass(frozen=True, slots=True)
class NullType(IdlType):
    kind: ClassVar[TypeKind] = TypeKind.NULL


@dataclass(frozen=True, slots=True)
class TextType(IdlType):
    kind: ClassVar[TypeKind] = TypeKind.TEXT


@dataclass(frozen=True, slots=True)
class ReservedType(IdlType):
    kind: ClassVar[TypeKind] = TypeKind.RESERVED


@dataclass(frozen=True, slots=True)
class EmptyType(IdlType):
    kind: ClassVar[TypeKind] = TypeKind.EMPTY


@dataclass(frozen=True, slots=True)
class FloatType(IdlType):
    bits: int = 64
    kind: ClassVar[TypeKind] = TypeKind.FLOAT

    @property
    def name(self) -> str:
        return f"float{self.bits}"


@dataclass(frozen=True, slots=True)
class IntType(IdlType):
    """Unbounded signed integer."""

    kind: ClassVar[TypeKind] = TypeKind.INT


@dataclass(frozen=True, slots=True)
class NatType(IdlType):
    """Unbounded natural number."""

    kind: ClassVar[TypeKind] = TypeKind.NAT


@dataclass(frozen=True, slots=True)
class FixedIntType(IdlType):
    bits: int
    kind: ClassVar[TypeKind] = TypeKind.FIXED_INT

    @property
    def name(self) -> str:
        return f"int{self.bits}"


@dataclass(frozen=True, slots=True)
class FixedNatType(IdlType):
    bits: int
    kind: ClassVar[TypeKind] = TypeKind.FIXED_NAT

    @property
    def name(self) -> str:
        return f"nat{self.bits}"


@dataclass(frozen=True, slots=True)
class PrincipalType(IdlType):
    kind: ClassVar[TypeKind] = TypeKind.PRINCIPAL


@dataclass(frozen=True, slots=True)
class VecType(IdlType):
    elem: IdlType
    kind: ClassVar[TypeKind] = TypeKind.VEC

    @property
    def name(self) -> str:
        return f"vec {self.elem.name}"

    def is_blob(self) -> bool:
        return isinstance(self.elem, FixedNatType) and self.elem.bits == 8


@dataclass(frozen=True, slots=True)
class OptType(IdlType):
    elem: IdlType
    kind: ClassVar[TypeKind] = TypeKind.OPT

    @property
    def name(self) -> str:
        return f"opt {self.elem.name}"


@dataclass(frozen=True, slots=True)
class RecordType(IdlType):
    fields: tuple[tuple[str, IdlType], ...]
    kind: ClassVar[TypeKind] = TypeKind.RECORD

    @property
    def name(self) -> str:
        inner = "; ".join(f"{n}: {t.name}" for n, t in self.fields)
        return f"record {{{inner}}}"


@dataclass(frozen=True, slots=True)
class TupleType(IdlType):
    components: tuple[IdlType, ...]
    kind: ClassVar[TypeKind] = TypeKind.TUPLE

    @property
    def name(self) -> str:
        inner = "; ".join(t.name for t in self.components)
        return f"record {{{inner}}}"


@dataclass(frozen=True, slots=True)
class VariantType(IdlType):
    fields: tuple[tuple[str, IdlType], ...]
    kind: ClassVar[TypeKind] = TypeKind.VARIANT

    @property
    def name(self) -> str:
        inner = "; ".join(n if isinstance(t, NullType) else f"{n}: {t.name}" for n, t in self.fields)
        return f"variant {{{inner}}}"

    @property
    def arm_names(self) -> tuple[str, ...]:
        return tuple(n for n, _ in self.fields)

    def arm(self, name: str) -> IdlType | None:
        for arm_name, arm_type in self.fields:
            if arm_name == name:
                return arm_type
        return None


_rec_ids = itertools.count()


@dataclass(eq=False, slots=True)
class RecType(IdlType):
    """Recursive binding; identity (``id``) is stable for the node's lifetime."""

    id: int = field(default_factory=lambda: next(_rec_ids))
    _inner: IdlType | None = None
    kind: ClassVar[TypeKind] = TypeKind.REC

    def fill(self, inner: IdlType) -> RecType:
        self._inner = inner
        return self

    @property
    def inner(self) -> IdlType:
        if self._inner is None:
            raise ValueError(f"recursive type rec_{self.id} was never filled")
        return self._inner

    @property
    def name(self) -> str:
        return f"rec_{self.id}"

    def __hash__(self) -> int:
        return hash(("rec", self.id))


@dataclass(frozen=True, slots=True)
class FuncType(IdlType):
    arg_types: tuple[IdlType, ...] = ()
    ret_types: tuple[IdlType, ...] = ()
    annotations: tuple[str, ...] = ()
    kind: ClassVar[TypeKind] = TypeKind.FUNC

    @property
    def name(self) -> str:
        args = ", ".join(t.name for t in self.arg_types)
        rets = ", ".join(t.name for t in self.ret_types)
        suffix = "".join(f" {a}" for a in self.annotations)
        return f"({args}) -> ({rets}){suffix}"

    @property
    def is_query(self) -> bool:
        return any(a in QUERY_ANNOTATIONS for a in self.annotations)


@dataclass(frozen=True, slots=True)
class ServiceType(IdlType):
    methods: tuple[tuple[str, FuncType], ...] = ()
    kind: ClassVar[TypeKind] = TypeKind.SERVICE

    @property
    def name(self) -> str:
        return "service {" + "; ".join(f"{n}: {f.name}" for n, f in self.methods) + "}"

    def method(self, name: str) -> FuncType | None:
        for method_name, func in self.methods:
            if method_name == name:
                return func
        return None


def _fields(fields: Mapping[str, IdlType] | Iterable[tuple[str, IdlType]]) -> tuple[tuple[str, IdlType], ...]:
    items = fields.items() if isinstance(fields, Mapping) else fields
    return tuple((str(n), t) for n, t in items)


class IDL:
    """Builders mirroring Candid's own spelling (``IDL.Vec(IDL.Nat8)``)."""

    Bool = BoolType()
    Null = NullType()
    Text = TextType()
    Reserved = ReservedType()
    Empty = EmptyType()
    Int = IntType()
    Nat = NatType()
    Float32 = FloatType(32)
    Float64 = FloatType(64)
    Int8 = FixedIntType(8)
    Int16 = FixedIntType(16)
    Int32 = FixedIntType(32)
    Int64 = FixedIntType(64)
    Nat8 = FixedNatType(8)
    Nat16 = FixedNatType(16)
    Nat32 = FixedNatType(32)
    Nat64 = FixedNatType(64)
    Principal = PrincipalType()

    @staticmethod
    def Vec(elem: IdlType) -> VecType:
        return VecType(elem)

    @staticmethod
    def Opt(elem: IdlType) -> OptType:
        return OptType(elem)

    @staticmethod
    def Record(fields: Mapping[str, IdlType] | Iterable[tuple[str, IdlType]]) -> RecordType:
        return RecordType(_fields(fields))

    @staticmethod
    def Tuple(*components: IdlType) -> TupleType:
        return TupleType(tuple(components))

    @staticmethod
    def Variant(fields: Mapping[str, IdlType] | Iterable[tuple[str, IdlType]]) -> VariantType:
        return VariantType(_fields(fields))

    @staticmethod
    def Rec() -> RecType:
        return RecType()

    @staticmethod
    def Func(
        arg_types: Iterable[IdlType] = (),
        ret_types: Iterable[IdlType] = (),
        annotations: Iterable[str] = (),
    ) -> FuncType:
        return FuncType(tuple(arg_types), tuple(ret_types), tuple(annotations))

    @staticmethod
    def Service(methods: Mapping[str, FuncType] | Iterable[tuple[str, FuncType]]) -> ServiceType:
        items = methods.items() if isinstance(methods, Mapping) else methods
        return ServiceType(tuple((str(n), f) for n, f in items))


def type_from_list(types: Iterable[IdlType]) -> IdlType:
    """Collapse an argument/return list into a single node."""
    types = tuple(types)
    if not types:
        return IDL.Null
    if len(types) == 1:
        return types[0]
    return TupleType(types)
