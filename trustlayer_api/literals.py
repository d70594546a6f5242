"""
Aleo typed literals.

Transaction inputs/outputs and mapping values come back from the explorer as
strings like ``2u8``, ``512000u32`` or ``1234field``. This module parses
those into typed values and renders Python ints back into literals.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class LiteralKind(str, Enum):
    U8 = "u8"
    U16 = "u16"
    U32 = "u32"
    FIELD = "field"


# Upper bounds (inclusive). The field modulus is below 2^253.
_MAX_VALUE = {
    LiteralKind.U8: 2**8 - 1,
    LiteralKind.U16: 2**16 - 1,
    LiteralKind.U32: 2**32 - 1,
    LiteralKind.FIELD: 2**253 - 1,
}

_EXACT = {kind: re.compile(rf"^(\d+){kind.value}$") for kind in LiteralKind}
# Embedded search must not match the tail of a longer type suffix or identifier.
_EMBEDDED = {kind: re.compile(rf"(?<![\w])(\d+){kind.value}(?![\w])") for kind in LiteralKind}


@dataclass(frozen=True)
class TypedLiteral:
    """A parsed Aleo literal."""

    value: int
    kind: LiteralKind

    def __str__(self) -> str:
        return format_literal(self.value, self.kind)


def _build(digits: str, kind: LiteralKind) -> Optional[TypedLiteral]:
    value = int(digits)
    if value > _MAX_VALUE[kind]:
        return None
    return TypedLiteral(value=value, kind=kind)


def parse_literal(text: object, kind: LiteralKind) -> Optional[TypedLiteral]:
    """
    Parse ``text`` as exactly one literal of ``kind``.

    Returns None when the text is not a string, does not match the grammar,
    or is out of range for the type.
    """
    if not isinstance(text, str):
        return None
    match = _EXACT[kind].match(text)
    if not match:
        return None
    return _build(match.group(1), kind)


def find_literal(text: object, kind: LiteralKind) -> Optional[TypedLiteral]:
    """Return the first literal of ``kind`` embedded anywhere in ``text``."""
    if not isinstance(text, str):
        return None
    for match in _EMBEDDED[kind].finditer(text):
        literal = _build(match.group(1), kind)
        if literal is not None:
            return literal
    return None


def format_literal(value: int, kind: LiteralKind) -> str:
    """Render ``value`` as an Aleo literal, e.g. ``format_literal(7, U32) == "7u32"``."""
    if value < 0 or value > _MAX_VALUE[kind]:
        raise ValueError(f"{value} out of range for {kind.value}")
    return f"{value}{kind.value}"


def ensure_field_suffix(value: object) -> str:
    """Append ``field`` to a bare numeral (``"42"`` -> ``"42field"``)."""
    text = str(value).strip()
    return text if text.endswith(LiteralKind.FIELD.value) else f"{text}{LiteralKind.FIELD.value}"
