"""Small helpers for working with collections of strings."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any


def string_in_slice(items: Iterable[str], value: str) -> bool:
    """Return True if ``value`` is one of ``items``."""
    return any(item == value for item in items)


def string_in_slice_case_insensitive(items: Iterable[str], value: str) -> bool:
    """Return True if ``value`` matches one of ``items`` ignoring case."""
    folded = value.casefold()
    return any(item.casefold() == folded for item in items)


def map_keys(mapping: Mapping[str, Any] | None) -> list[str]:
    """Return the keys of ``mapping`` as a list (empty for ``None``)."""
    if mapping is None:
        return []
    return list(mapping)


def unique_strings(items: Iterable[str]) -> list[str]:
    """Return the distinct values of ``items``."""
    return list(dict.fromkeys(items))