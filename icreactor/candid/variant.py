"""Helpers for wire-shaped variants (single-key dicts)."""

from __future__ import annotations

from typing import Any

from icreactor.utils.helpers import DISCRIMINANT


def create_null_variant(name: str) -> dict[str, None]:
    return {name: None}


def get_variant_key(variant: dict[str, Any]) -> str:
    keys = list(variant)
    if len(keys) != 1:
        raise ValueError(f"Invalid variant: must have exactly one key but found {keys}")
    return keys[0]


def get_variant_value(variant: dict[str, Any]) -> Any:
    return variant[get_variant_key(variant)]


def get_variant_key_value(variant: dict[str, Any]) -> tuple[str, Any]:
    key = get_variant_key(variant)
    return key, variant[key]


def get_variant_value_by_key(variant: dict[str, Any], key: str) -> Any:
    actual = get_variant_key(variant)
    if actual != key:
        raise ValueError(f"Variant key mismatch: expected {key}, got {actual}")
    return variant[key]


def is_key_match_variant(variant: dict[str, Any], key: str) -> bool:
    return get_variant_key(variant) == key


def create_variant(variant: dict[str, Any]) -> dict[str, Any]:
    """``{"A": x}`` -> ``{"_type": "A", "A": x}``; ``{"A": None}`` -> ``{"_type": "A"}``."""
    key, value = get_variant_key_value(variant)
    out: dict[str, Any] = {DISCRIMINANT: key}
    if value is not None:
        out[key] = value
    return out
