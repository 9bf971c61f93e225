"""Result convention: ``variant { Ok: T; Err: E }`` (or ``ok``/``err``)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from icreactor.candid.types import IdlType, RecType, VariantType
from icreactor.utils.exceptions import classify_canister_error

RESULT_ARM_PAIRS = (("Ok", "Err"), ("ok", "err"))


@dataclass(frozen=True, slots=True)
class UnwrapOutcome:
    """Either the success payload or the failure payload, plus the arm it came from."""

    value: Any
    is_err: bool = False
    arm: str | None = None


def resolve_type(idl_type: IdlType | None) -> IdlType | None:
    """Follow recursive bindings down to the node they stand for."""
    seen: set[int] = set()
    while isinstance(idl_type, RecType) and idl_type.id not in seen:
        seen.add(idl_type.id)
        idl_type = idl_type.inner
    return idl_type


def is_result_variant(idl_type: IdlType | None) -> bool:
    idl_type = resolve_type(idl_type)
    if not isinstance(idl_type, VariantType):
        return False
    return set(idl_type.arm_names) in ({ok, err} for ok, err in RESULT_ARM_PAIRS)


def unwrap_result(value: Any, return_type: IdlType | None = None) -> UnwrapOutcome:
    """
    Split a decoded return value into success or failure.

    When ``return_type`` is given, only a result-shaped variant is unwrapped;
    without it any single-key dict keyed ``Ok``/``ok``/``Err``/``err`` is.
    Anything else is a success carrying the value unchanged.
    """
    if return_type is not None and not is_result_variant(return_type):
        return UnwrapOutcome(value)
    if not isinstance(value, dict) or len(value) != 1:
        return UnwrapOutcome(value)
    (key, payload), = value.items()
    for ok, err in RESULT_ARM_PAIRS:
        if key == ok:
            return UnwrapOutcome(payload, arm=key)
        if key == err:
            return UnwrapOutcome(payload, is_err=True, arm=key)
    return UnwrapOutcome(value)


def extract_ok_result(value: Any, return_type: IdlType | None = None) -> Any:
    """Return the ``Ok`` payload or raise ``CanisterError`` carrying the ``Err`` payload."""
    outcome = unwrap_result(value, return_type)
    if outcome.is_err:
        raise classify_canister_error(outcome.value)
    return outcome.value
