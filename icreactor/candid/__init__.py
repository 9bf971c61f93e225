"""Candid type tree, principals and variant helpers."""

from icreactor.candid.principal import Principal
from icreactor.candid.types import IDL, IdlType, TypeKind, type_from_list

__all__ = ["IDL", "IdlType", "Principal", "TypeKind", "type_from_list"]
