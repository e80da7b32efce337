"""Typed CSV cell values."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, TypeAlias

Value: TypeAlias = bool | int | str | dict[str, Any] | list[Any]

_INT_PATTERN = re.compile(r"^[+-]?\d+$")


@dataclass(slots=True, frozen=True)
class BoolCell:
    value: bool


@dataclass(slots=True, frozen=True)
class IntCell:
    value: int


@dataclass(slots=True, frozen=True)
class ObjCell:
    value: dict[str, Any] | list[Any]


@dataclass(slots=True, frozen=True)
class StrCell:
    value: str

    @property
    def is_empty(self) -> bool:
        return not self.value.strip()


Cell: TypeAlias = BoolCell | IntCell | ObjCell | StrCell


def decode_cell(text: str) -> Cell:
    """Decode the raw text of a CSV cell.

    ``true``/``false`` (any case) become booleans, decimal integers become ints,
    JSON objects and arrays become nested values and anything else stays a string.
    """

    stripped = text.strip()
    lowered = stripped.lower()
    if lowered in {"true", "false"}:
        return BoolCell(lowered == "true")
    if _INT_PATTERN.match(stripped):
        return IntCell(int(stripped))
    if stripped[:1] in {"{", "["}:
        try:
            decoded = json.loads(stripped)
        except json.JSONDecodeError:
            return StrCell(text)
        if isinstance(decoded, dict | list):
            return ObjCell(decoded)
    return StrCell(text)


def encode_value(value: Value | None) -> str:
    match value:
        case None:
            return ""
        case bool():
            return "true" if value else "false"
        case int():
            return str(value)
        case dict() | list():
            return json.dumps(value, separators=(",", ":"))
        case _:
            return str(value)
