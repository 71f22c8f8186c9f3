"""Byte stuffing for the 0xFC delimiter.

A literal 0xFC inside a payload is sent twice. A single 0xFC followed by
any other byte marks a frame boundary; which boundary depends on the
direction, so un-escaping is left to the decoders.
"""
from __future__ import annotations

from collections.abc import Iterable

from .protocol import ESCAPE_CHAR, ESCAPED_ESCAPE


def is_escape(byte: int) -> bool:
    return byte == ESCAPE_CHAR


def escape(byte: int) -> bytes:
    """Return the wire form of a single payload byte (one or two bytes)."""
    if not 0 <= byte <= 0xFF:
        raise ValueError(f"Byte value {byte} outside 0..255")
    if byte == ESCAPE_CHAR:
        return ESCAPED_ESCAPE
    return bytes((byte,))


def escape_bytes(data: Iterable[int]) -> bytes:
    """Escape a whole payload."""
    result = bytearray()
    for byte in data:
        result += escape(byte)
    return bytes(result)


__all__ = ["escape", "escape_bytes", "is_escape"]
