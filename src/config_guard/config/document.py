"""
config-guard — typed JSON document primitives

File: src/config_guard/config/document.py
Last updated: 2026-10-17

Purpose
- Represent a decoded JSON document as a frozen tree and classify its nodes by kind,
  so typed accessors reduce to one ``expect(kind)`` primitive.

Functional requirements
- Objects freeze to read-only mappings; arrays freeze to tuples.
- ``bool`` is never classified as ``INTEGER``/``NUMBER``.
- ``thaw`` returns a deep mutable copy (``dict`` / ``list``).

Non-functional requirements
- Pure functions; no I/O.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from config_guard.errors import ConfigValidationError


class JsonKind(StrEnum):
    OBJECT = "object"
    ARRAY = "array"
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    NULL = "null"


def kind_of(value: object) -> JsonKind:
    """Classify a frozen or plain JSON value."""

    if value is None:
        return JsonKind.NULL
    if isinstance(value, bool):
        return JsonKind.BOOLEAN
    if isinstance(value, int):
        return JsonKind.INTEGER
    if isinstance(value, float):
        return JsonKind.NUMBER
    if isinstance(value, str):
        return JsonKind.STRING
    if isinstance(value, Mapping):
        return JsonKind.OBJECT
    if isinstance(value, Sequence):
        return JsonKind.ARRAY
    raise TypeError(f"unsupported JSON value type: {type(value).__name__}")


def matches_kind(value: object, kind: JsonKind) -> bool:
    actual = kind_of(value)
    if actual is kind:
        return True
    # Integers are valid wherever a number is expected.
    return kind is JsonKind.NUMBER and actual is JsonKind.INTEGER


def expect(value: object, kind: JsonKind, *, key: str) -> Any:
    """Return ``value`` when it is of ``kind``; raise ``ConfigValidationError`` otherwise."""

    if not matches_kind(value, kind):
        raise ConfigValidationError(
            f"Config value {key!r} must be {_article(kind)} {kind.value} (got {kind_of(value).value}).",
            key=key,
        )
    return value


def _article(kind: JsonKind) -> str:
    return "an" if kind.value[0] in "aeiou" else "a"


def freeze(value: object) -> object:
    """Deep-convert plain JSON data into an immutable tree."""

    if isinstance(value, Mapping):
        return MappingProxyType({str(key): freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    kind_of(value)
    return value


def thaw(value: object) -> object:
    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [thaw(item) for item in value]
    return value


__all__ = [
    "JsonKind",
    "expect",
    "freeze",
    "kind_of",
    "matches_kind",
    "thaw",
]
