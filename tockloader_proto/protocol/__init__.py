"""Tockloader bootloader wire protocol: framing, messages and codecs."""

from .buffer import DecodeBuffer
from .decoder import CommandDecoder, ResponseDecoder
from .encoder import CommandEncoder, ResponseEncoder, encode_command, encode_response
from .errors import (
    BadLengthError,
    CodecError,
    FrameOverflowError,
    InvalidValueError,
    MissingContextError,
    UnknownCommandTypeError,
    UnknownResponseTypeError,
)
from .escaping import escape, escape_bytes, is_escape
from .protocol import BaudMode, CommandCode, ResponseCode
from .structures import *  # noqa: F401,F403
from .structures import __all__ as _structures_all

__all__ = [
    "BadLengthError",
    "BaudMode",
    "CodecError",
    "CommandCode",
    "CommandDecoder",
    "CommandEncoder",
    "DecodeBuffer",
    "FrameOverflowError",
    "InvalidValueError",
    "MissingContextError",
    "ResponseCode",
    "ResponseDecoder",
    "ResponseEncoder",
    "UnknownCommandTypeError",
    "UnknownResponseTypeError",
    "encode_command",
    "encode_response",
    "escape",
    "escape_bytes",
    "is_escape",
    *_structures_all,
]
