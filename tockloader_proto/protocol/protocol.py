"""Wire-level constants for the Tockloader bootloader protocol.

Multi-byte integers on the wire are little-endian.
"""
from __future__ import annotations

from enum import IntEnum
from typing import Final

from construct import Int8ul, Int16ul, Int32ul  # type: ignore

ESCAPE_CHAR: Final[int] = 0xFC
ESCAPED_ESCAPE: Final[bytes] = bytes([ESCAPE_CHAR, ESCAPE_CHAR])

UINT8_MAX: Final[int] = 0xFF
UINT16_MAX: Final[int] = 0xFFFF
UINT32_MAX: Final[int] = 0xFFFFFFFF

PAGE_SIZE: Final[int] = 512
ADDRESS_SIZE: Final[int] = 4
WRITE_PAGE_PAYLOAD_SIZE: Final[int] = ADDRESS_SIZE + PAGE_SIZE

# Largest payload (WritePage) plus a little headroom.
DEFAULT_BUFFER_CAPACITY: Final[int] = 520
MIN_BUFFER_CAPACITY: Final[int] = DEFAULT_BUFFER_CAPACITY
MAX_BUFFER_CAPACITY: Final[int] = UINT16_MAX + 1 + 8

ATTRIBUTE_COUNT: Final[int] = 16
ATTRIBUTE_KEY_SIZE: Final[int] = 8
ATTRIBUTE_VALUE_MAX: Final[int] = 55
ATTRIBUTE_HEADER_SIZE: Final[int] = 1 + ATTRIBUTE_KEY_SIZE + 1

INFO_TEXT_SIZE: Final[int] = 192

ERASED_BYTE: Final[int] = 0xFF

UINT8_STRUCT: Final = Int8ul
UINT16_STRUCT: Final = Int16ul
UINT32_STRUCT: Final = Int32ul


class CommandCode(IntEnum):
    """Type byte trailing every command frame."""

    PING = 0x01
    INFO = 0x03
    ID = 0x04
    RESET = 0x05
    ERASE_PAGE = 0x06
    WRITE_PAGE = 0x07
    ERASE_EX_BLOCK = 0x08
    WRITE_EX_PAGE = 0x09
    CRC_RX_BUFFER = 0x10
    READ_RANGE = 0x11
    EX_READ_RANGE = 0x12
    SET_ATTRIBUTE = 0x13
    GET_ATTRIBUTE = 0x14
    CRC_INTERNAL_FLASH = 0x15
    CRC_EX_FLASH = 0x16
    ERASE_EX_PAGE = 0x17
    EX_FLASH_INIT = 0x18
    CLOCK_OUT = 0x19
    WRITE_FLASH_USER_PAGES = 0x20
    CHANGE_BAUD_RATE = 0x21


class ResponseCode(IntEnum):
    """Type byte leading every response frame."""

    OVERFLOW = 0x10
    PONG = 0x11
    BAD_ADDRESS = 0x12
    INTERNAL_ERROR = 0x13
    BAD_ARGUMENTS = 0x14
    OK = 0x15
    UNKNOWN = 0x16
    EX_FLASH_TIMEOUT = 0x17
    EX_FLASH_PAGE_ERROR = 0x18
    CRC_RX_BUFFER = 0x19
    READ_RANGE = 0x20
    EX_READ_RANGE = 0x21
    GET_ATTRIBUTE = 0x22
    CRC_INTERNAL_FLASH = 0x23
    CRC_EX_FLASH = 0x24
    INFO = 0x25
    CHANGE_BAUD_FAIL = 0x26


class BaudMode(IntEnum):
    """Sub-command byte of a baud rate change.

    ``SET`` is answered at the old rate; the host must then repeat the
    command with ``VERIFY`` at the new rate before the change sticks.
    """

    SET = 0x01
    VERIFY = 0x02


__all__ = [
    "ADDRESS_SIZE",
    "ATTRIBUTE_COUNT",
    "ATTRIBUTE_HEADER_SIZE",
    "ATTRIBUTE_KEY_SIZE",
    "ATTRIBUTE_VALUE_MAX",
    "BaudMode",
    "CommandCode",
    "DEFAULT_BUFFER_CAPACITY",
    "ERASED_BYTE",
    "ESCAPED_ESCAPE",
    "ESCAPE_CHAR",
    "INFO_TEXT_SIZE",
    "MAX_BUFFER_CAPACITY",
    "MIN_BUFFER_CAPACITY",
    "PAGE_SIZE",
    "ResponseCode",
    "UINT16_MAX",
    "UINT16_STRUCT",
    "UINT32_MAX",
    "UINT32_STRUCT",
    "UINT8_MAX",
    "UINT8_STRUCT",
    "WRITE_PAGE_PAYLOAD_SIZE",
]
