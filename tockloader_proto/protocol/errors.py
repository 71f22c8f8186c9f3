"""Exceptions raised by the codec.

Every error derives from :class:`CodecError`, itself a ``ValueError`` so
callers that only care about "bad frame" can keep catching ``ValueError``.
"""

from __future__ import annotations


class CodecError(ValueError):
    """Base class for all codec failures."""


class FrameOverflowError(CodecError):
    """A payload does not fit in the decode buffer."""


class BadLengthError(CodecError):
    """Buffered bytes do not match the size the message type requires."""


class UnknownCommandTypeError(CodecError):
    """The trailing type byte of a command frame is not a known command."""

    def __init__(self, code: int) -> None:
        super().__init__(f"Unknown command type 0x{code:02X}")
        self.code = code


class UnknownResponseTypeError(CodecError):
    """The leading type byte of a response frame is not a known response."""

    def __init__(self, code: int) -> None:
        super().__init__(f"Unknown response type 0x{code:02X}")
        self.code = code


class InvalidValueError(CodecError):
    """A message field is outside the range the wire format can carry."""


class MissingContextError(CodecError):
    """A context-dependent response arrived without its expected length."""


__all__ = [
    "BadLengthError",
    "CodecError",
    "FrameOverflowError",
    "InvalidValueError",
    "MissingContextError",
    "UnknownCommandTypeError",
    "UnknownResponseTypeError",
]
