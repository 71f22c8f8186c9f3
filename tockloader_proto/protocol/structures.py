"""Typed command and response messages.

Each variant is a frozen ``msgspec.Struct`` carrying its fields, paired with
a ``construct`` schema describing the unescaped payload layout. The schema
drives both parsing (decoders) and building (encoders), so the byte layout
is declared exactly once per message type.
"""

from __future__ import annotations

import functools
from typing import Any, ClassVar, Final, Type, TypeVar

import msgspec
import msgspec.structs
from construct import (  # type: ignore
    Bytes,
    ConstructError,
    GreedyBytes,
    SizeofError,
    Terminated,
    this,
    Struct as BinStruct,
)

from .errors import BadLengthError, InvalidValueError
from .protocol import (
    ATTRIBUTE_COUNT,
    ATTRIBUTE_HEADER_SIZE,
    ATTRIBUTE_KEY_SIZE,
    ATTRIBUTE_VALUE_MAX,
    ERASED_BYTE,
    INFO_TEXT_SIZE,
    PAGE_SIZE,
    UINT8_MAX,
    UINT8_STRUCT,
    UINT16_MAX,
    UINT16_STRUCT,
    UINT32_MAX,
    UINT32_STRUCT,
    BaudMode,
    CommandCode,
    ResponseCode,
)

T = TypeVar("T", bound="BaseMessage")

EMPTY_PAYLOAD: Final = BinStruct()
ADDRESS_PAYLOAD: Final = BinStruct("address" / UINT32_STRUCT)
PAGE_PAYLOAD: Final = BinStruct("address" / UINT32_STRUCT, "data" / Bytes(PAGE_SIZE))
RANGE_PAYLOAD: Final = BinStruct("address" / UINT32_STRUCT, "length" / UINT16_STRUCT)
FLASH_CRC_PAYLOAD: Final = BinStruct("address" / UINT32_STRUCT, "length" / UINT32_STRUCT)
CRC_VALUE_PAYLOAD: Final = BinStruct("value" / UINT32_STRUCT)
RANGE_DATA_PAYLOAD: Final = BinStruct("data" / GreedyBytes)


def _require_uint(name: str, value: Any, maximum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= maximum:
        raise InvalidValueError(f"{name} must be an integer in 0..{maximum}, got {value!r}")


def _require_bytes(name: str, value: Any, *, size: int | None = None, max_size: int | None = None) -> None:
    if not isinstance(value, bytes):
        raise InvalidValueError(f"{name} must be bytes, got {type(value).__name__}")
    if size is not None and len(value) != size:
        raise InvalidValueError(f"{name} must be exactly {size} bytes, got {len(value)}")
    if max_size is not None and len(value) > max_size:
        raise InvalidValueError(f"{name} must be at most {max_size} bytes, got {len(value)}")


def _pad(name: str, value: bytes | str, size: int, fill: int) -> bytes:
    raw = value.encode("utf-8") if isinstance(value, str) else bytes(value)
    if len(raw) > size:
        raise InvalidValueError(f"{name} must be at most {size} bytes, got {len(raw)}")
    return raw + bytes([fill]) * (size - len(raw))


class BaseMessage(msgspec.Struct, frozen=True):
    """Common decode/encode plumbing for every message variant."""

    CODE: ClassVar[int]
    CONTEXT_DEPENDENT: ClassVar[bool] = False
    _SCHEMA: ClassVar[Any] = EMPTY_PAYLOAD

    @classmethod
    def payload_size(cls) -> int | None:
        """Unescaped payload size, or ``None`` when it is not fixed."""
        return _fixed_size(cls)

    @classmethod
    def decode(cls: Type[T], data: bytes | bytearray | memoryview) -> T:
        """Decode an unescaped payload into a typed message.

        Raises:
            BadLengthError: the payload does not match the variant's layout.
            InvalidValueError: a field holds a value the variant cannot take.
        """
        raw = bytes(data)
        cls._check_length(raw)
        try:
            container: Any = _strict_schema(cls).parse(raw)
        except ConstructError as exc:
            raise BadLengthError(f"{cls.__name__} payload malformed: {exc}") from exc
        return cls._from_fields({k: v for k, v in container.items() if not k.startswith("_")})

    @classmethod
    def _check_length(cls, raw: bytes) -> None:
        expected = cls.payload_size()
        if expected is not None and len(raw) != expected:
            raise BadLengthError(f"{cls.__name__} expects {expected} payload bytes, got {len(raw)}")

    @classmethod
    def _from_fields(cls: Type[T], fields: dict[str, Any]) -> T:
        return cls(**fields)

    def encode(self) -> bytes:
        """Build the unescaped payload bytes."""
        return self._SCHEMA.build(msgspec.structs.asdict(self))

    def validate(self) -> None:
        """Raise :class:`InvalidValueError` if the message cannot be encoded.

        Variants without fields have nothing to check.
        """
        return None


@functools.cache
def _fixed_size(message_type: type[BaseMessage]) -> int | None:
    if message_type.CONTEXT_DEPENDENT:
        return None
    try:
        return message_type._SCHEMA.sizeof()
    except SizeofError:
        return None


@functools.cache
def _strict_schema(message_type: type[BaseMessage]) -> Any:
    # Terminated rejects trailing bytes the layout does not account for.
    return BinStruct(*message_type._SCHEMA.subcons, Terminated)


# --- Commands (host -> bootloader) ---


class BaseCommand(BaseMessage, frozen=True):
    CODE: ClassVar[CommandCode]


class PingCommand(BaseCommand, frozen=True):
    """Ask the bootloader to drop its buffers and answer with a pong."""

    CODE = CommandCode.PING


class InfoCommand(BaseCommand, frozen=True):
    CODE = CommandCode.INFO


class IdCommand(BaseCommand, frozen=True):
    CODE = CommandCode.ID


class ResetCommand(BaseCommand, frozen=True):
    """Clear all bootloader RX/TX buffers. Never answered."""

    CODE = CommandCode.RESET


class CrcRxBufferCommand(BaseCommand, frozen=True):
    CODE = CommandCode.CRC_RX_BUFFER


class ExFlashInitCommand(BaseCommand, frozen=True):
    CODE = CommandCode.EX_FLASH_INIT


class ClockOutCommand(BaseCommand, frozen=True):
    CODE = CommandCode.CLOCK_OUT


class _AddressCommand(BaseCommand, frozen=True):
    address: int

    _SCHEMA = ADDRESS_PAYLOAD

    def validate(self) -> None:
        _require_uint("address", self.address, UINT32_MAX)


class ErasePageCommand(_AddressCommand, frozen=True):
    """Erase the 512 byte internal flash page starting at ``address``."""

    CODE = CommandCode.ERASE_PAGE


class EraseExBlockCommand(_AddressCommand, frozen=True):
    """Erase an 8 page block of external flash."""

    CODE = CommandCode.ERASE_EX_BLOCK


class EraseExPageCommand(_AddressCommand, frozen=True):
    CODE = CommandCode.ERASE_EX_PAGE


class _PageCommand(BaseCommand, frozen=True):
    address: int
    data: bytes

    _SCHEMA = PAGE_PAYLOAD

    @classmethod
    def padded(cls: Type[T], address: int, data: bytes) -> T:
        """Build a page write, filling a short ``data`` with erased (0xFF) bytes."""
        return cls(address=address, data=_pad("data", data, PAGE_SIZE, ERASED_BYTE))

    def validate(self) -> None:
        _require_uint("address", self.address, UINT32_MAX)
        _require_bytes("data", self.data, size=PAGE_SIZE)


class WritePageCommand(_PageCommand, frozen=True):
    """Program one 512 byte page of internal flash."""

    CODE = CommandCode.WRITE_PAGE


class WriteExPageCommand(_PageCommand, frozen=True):
    CODE = CommandCode.WRITE_EX_PAGE


class _RangeCommand(BaseCommand, frozen=True):
    address: int
    length: int

    _SCHEMA = RANGE_PAYLOAD

    def validate(self) -> None:
        _require_uint("address", self.address, UINT32_MAX)
        _require_uint("length", self.length, UINT16_MAX)


class ReadRangeCommand(_RangeCommand, frozen=True):
    """Read ``length`` bytes of internal flash.

    The reply carries no length of its own; the response decoder must be
    told to expect ``length`` bytes.
    """

    CODE = CommandCode.READ_RANGE


class ExReadRangeCommand(_RangeCommand, frozen=True):
    CODE = CommandCode.EX_READ_RANGE


class _FlashCrcCommand(BaseCommand, frozen=True):
    address: int
    length: int

    _SCHEMA = FLASH_CRC_PAYLOAD

    def validate(self) -> None:
        _require_uint("address", self.address, UINT32_MAX)
        _require_uint("length", self.length, UINT32_MAX)


class CrcInternalFlashCommand(_FlashCrcCommand, frozen=True):
    CODE = CommandCode.CRC_INTERNAL_FLASH


class CrcExFlashCommand(_FlashCrcCommand, frozen=True):
    CODE = CommandCode.CRC_EX_FLASH


class SetAttributeCommand(BaseCommand, frozen=True):
    """Store a key/value attribute in slot ``index``.

    ``key`` is 8 bytes, null padded. ``length`` is carried on the wire and
    must match ``len(value)``, between 1 and 55.
    """

    index: int
    key: bytes
    length: int
    value: bytes

    CODE = CommandCode.SET_ATTRIBUTE
    _SCHEMA = BinStruct(
        "index" / UINT8_STRUCT,
        "key" / Bytes(ATTRIBUTE_KEY_SIZE),
        "length" / UINT8_STRUCT,
        "value" / Bytes(this.length),
    )

    @classmethod
    def build(cls, index: int, key: bytes | str, value: bytes) -> "SetAttributeCommand":
        value = bytes(value)
        return cls(
            index=index,
            key=_pad("key", key, ATTRIBUTE_KEY_SIZE, 0x00),
            length=len(value),
            value=value,
        )

    @classmethod
    def _check_length(cls, raw: bytes) -> None:
        if len(raw) < ATTRIBUTE_HEADER_SIZE:
            raise BadLengthError(
                f"SetAttributeCommand needs at least {ATTRIBUTE_HEADER_SIZE} payload bytes, got {len(raw)}"
            )
        declared = raw[ATTRIBUTE_HEADER_SIZE - 1]
        if not 1 <= declared <= ATTRIBUTE_VALUE_MAX:
            raise BadLengthError(f"Attribute length {declared} outside 1..{ATTRIBUTE_VALUE_MAX}")
        if len(raw) != ATTRIBUTE_HEADER_SIZE + declared:
            raise BadLengthError(
                f"Attribute declares {declared} value bytes, got {len(raw) - ATTRIBUTE_HEADER_SIZE}"
            )

    def validate(self) -> None:
        _require_uint("index", self.index, ATTRIBUTE_COUNT - 1)
        _require_bytes("key", self.key, size=ATTRIBUTE_KEY_SIZE)
        _require_uint("length", self.length, UINT8_MAX)
        if not 1 <= self.length <= ATTRIBUTE_VALUE_MAX:
            raise InvalidValueError(f"length must be in 1..{ATTRIBUTE_VALUE_MAX}, got {self.length}")
        _require_bytes("value", self.value, size=self.length)


class GetAttributeCommand(BaseCommand, frozen=True):
    index: int

    CODE = CommandCode.GET_ATTRIBUTE
    _SCHEMA = BinStruct("index" / UINT8_STRUCT)

    def validate(self) -> None:
        _require_uint("index", self.index, ATTRIBUTE_COUNT - 1)


class WriteFlashUserPagesCommand(BaseCommand, frozen=True):
    page1: int
    page2: int

    CODE = CommandCode.WRITE_FLASH_USER_PAGES
    _SCHEMA = BinStruct("page1" / UINT32_STRUCT, "page2" / UINT32_STRUCT)

    def validate(self) -> None:
        _require_uint("page1", self.page1, UINT32_MAX)
        _require_uint("page2", self.page2, UINT32_MAX)


class ChangeBaudRateCommand(BaseCommand, frozen=True):
    """Switch (``BaudMode.SET``) or confirm (``BaudMode.VERIFY``) a new baud rate."""

    mode: BaudMode
    baud: int

    CODE = CommandCode.CHANGE_BAUD_RATE
    _SCHEMA = BinStruct("mode" / UINT8_STRUCT, "baud" / UINT32_STRUCT)

    @classmethod
    def _from_fields(cls, fields: dict[str, Any]) -> "ChangeBaudRateCommand":
        try:
            mode = BaudMode(fields["mode"])
        except ValueError as exc:
            raise InvalidValueError(f"Unknown baud mode 0x{fields['mode']:02X}") from exc
        return cls(mode=mode, baud=fields["baud"])

    def validate(self) -> None:
        if not isinstance(self.mode, BaudMode):
            raise InvalidValueError(f"mode must be a BaudMode, got {self.mode!r}")
        _require_uint("baud", self.baud, UINT32_MAX)


# --- Responses (bootloader -> host) ---


class BaseResponse(BaseMessage, frozen=True):
    CODE: ClassVar[ResponseCode]


class OverflowResponse(BaseResponse, frozen=True):
    CODE = ResponseCode.OVERFLOW


class PongResponse(BaseResponse, frozen=True):
    CODE = ResponseCode.PONG


class BadAddressResponse(BaseResponse, frozen=True):
    CODE = ResponseCode.BAD_ADDRESS


class InternalErrorResponse(BaseResponse, frozen=True):
    CODE = ResponseCode.INTERNAL_ERROR


class BadArgumentsResponse(BaseResponse, frozen=True):
    CODE = ResponseCode.BAD_ARGUMENTS


class OkResponse(BaseResponse, frozen=True):
    CODE = ResponseCode.OK


class UnknownResponse(BaseResponse, frozen=True):
    """Sent by the bootloader for a command it does not recognise."""

    CODE = ResponseCode.UNKNOWN


class ExFlashTimeoutResponse(BaseResponse, frozen=True):
    CODE = ResponseCode.EX_FLASH_TIMEOUT


class ExFlashPageErrorResponse(BaseResponse, frozen=True):
    CODE = ResponseCode.EX_FLASH_PAGE_ERROR


class ChangeBaudFailResponse(BaseResponse, frozen=True):
    CODE = ResponseCode.CHANGE_BAUD_FAIL


class CrcRxBufferResponse(BaseResponse, frozen=True):
    length: int
    crc: int

    CODE = ResponseCode.CRC_RX_BUFFER
    _SCHEMA = BinStruct("length" / UINT16_STRUCT, "crc" / UINT32_STRUCT)

    def validate(self) -> None:
        _require_uint("length", self.length, UINT16_MAX)
        _require_uint("crc", self.crc, UINT32_MAX)


class _RangeDataResponse(BaseResponse, frozen=True):
    data: bytes

    CONTEXT_DEPENDENT = True
    _SCHEMA = RANGE_DATA_PAYLOAD

    def validate(self) -> None:
        _require_bytes("data", self.data, max_size=UINT16_MAX)


class ReadRangeResponse(_RangeDataResponse, frozen=True):
    """Flash contents; its length is the one the matching command asked for."""

    CODE = ResponseCode.READ_RANGE


class ExReadRangeResponse(_RangeDataResponse, frozen=True):
    CODE = ResponseCode.EX_READ_RANGE


class GetAttributeResponse(BaseResponse, frozen=True):
    """Attribute slot contents: 8 byte key, value length and 55 value bytes."""

    key: bytes
    length: int
    value: bytes

    CODE = ResponseCode.GET_ATTRIBUTE
    _SCHEMA = BinStruct(
        "key" / Bytes(ATTRIBUTE_KEY_SIZE),
        "length" / UINT8_STRUCT,
        "value" / Bytes(ATTRIBUTE_VALUE_MAX),
    )

    @classmethod
    def build(cls, key: bytes | str, value: bytes) -> "GetAttributeResponse":
        value = bytes(value)
        return cls(
            key=_pad("key", key, ATTRIBUTE_KEY_SIZE, 0x00),
            length=len(value),
            value=_pad("value", value, ATTRIBUTE_VALUE_MAX, 0x00),
        )

    @property
    def data(self) -> bytes:
        return self.value[: self.length]

    @classmethod
    def _from_fields(cls, fields: dict[str, Any]) -> "GetAttributeResponse":
        if fields["length"] > ATTRIBUTE_VALUE_MAX:
            raise BadLengthError(f"Attribute length {fields['length']} exceeds {ATTRIBUTE_VALUE_MAX}")
        return cls(**fields)

    def validate(self) -> None:
        _require_bytes("key", self.key, size=ATTRIBUTE_KEY_SIZE)
        _require_uint("length", self.length, ATTRIBUTE_VALUE_MAX)
        _require_bytes("value", self.value, size=ATTRIBUTE_VALUE_MAX)


class _CrcValueResponse(BaseResponse, frozen=True):
    value: int

    _SCHEMA = CRC_VALUE_PAYLOAD

    def validate(self) -> None:
        _require_uint("value", self.value, UINT32_MAX)


class CrcResponse(_CrcValueResponse, frozen=True):
    """CRC32 of an internal flash range."""

    CODE = ResponseCode.CRC_INTERNAL_FLASH


class CrcExFlashResponse(_CrcValueResponse, frozen=True):
    CODE = ResponseCode.CRC_EX_FLASH


class InfoResponse(BaseResponse, frozen=True):
    """Bootloader information string, zero padded to 192 bytes."""

    length: int
    text: bytes

    CODE = ResponseCode.INFO
    _SCHEMA = BinStruct("length" / UINT8_STRUCT, "text" / Bytes(INFO_TEXT_SIZE))

    @classmethod
    def from_text(cls, text: bytes | str) -> "InfoResponse":
        padded = _pad("text", text, INFO_TEXT_SIZE, 0x00)
        length = len(text.encode("utf-8")) if isinstance(text, str) else len(text)
        return cls(length=length, text=padded)

    @property
    def info(self) -> bytes:
        return self.text[: self.length]

    @classmethod
    def _from_fields(cls, fields: dict[str, Any]) -> "InfoResponse":
        if fields["length"] > INFO_TEXT_SIZE:
            raise BadLengthError(f"Info length {fields['length']} exceeds {INFO_TEXT_SIZE}")
        return cls(**fields)

    def validate(self) -> None:
        _require_uint("length", self.length, INFO_TEXT_SIZE)
        _require_bytes("text", self.text, size=INFO_TEXT_SIZE)


# --- Registries ---

COMMAND_TYPES: Final[dict[int, type[BaseCommand]]] = {
    command_type.CODE: command_type
    for command_type in (
        PingCommand,
        InfoCommand,
        IdCommand,
        ResetCommand,
        ErasePageCommand,
        WritePageCommand,
        EraseExBlockCommand,
        WriteExPageCommand,
        CrcRxBufferCommand,
        ReadRangeCommand,
        ExReadRangeCommand,
        SetAttributeCommand,
        GetAttributeCommand,
        CrcInternalFlashCommand,
        CrcExFlashCommand,
        EraseExPageCommand,
        ExFlashInitCommand,
        ClockOutCommand,
        WriteFlashUserPagesCommand,
        ChangeBaudRateCommand,
    )
}

RESPONSE_TYPES: Final[dict[int, type[BaseResponse]]] = {
    response_type.CODE: response_type
    for response_type in (
        OverflowResponse,
        PongResponse,
        BadAddressResponse,
        InternalErrorResponse,
        BadArgumentsResponse,
        OkResponse,
        UnknownResponse,
        ExFlashTimeoutResponse,
        ExFlashPageErrorResponse,
        CrcRxBufferResponse,
        ReadRangeResponse,
        ExReadRangeResponse,
        GetAttributeResponse,
        CrcResponse,
        CrcExFlashResponse,
        InfoResponse,
        ChangeBaudFailResponse,
    )
}


__all__ = [
    "BadAddressResponse",
    "BadArgumentsResponse",
    "BaseCommand",
    "BaseMessage",
    "BaseResponse",
    "COMMAND_TYPES",
    "ChangeBaudFailResponse",
    "ChangeBaudRateCommand",
    "ClockOutCommand",
    "CrcExFlashCommand",
    "CrcExFlashResponse",
    "CrcInternalFlashCommand",
    "CrcResponse",
    "CrcRxBufferCommand",
    "CrcRxBufferResponse",
    "EraseExBlockCommand",
    "EraseExPageCommand",
    "ErasePageCommand",
    "ExFlashInitCommand",
    "ExFlashPageErrorResponse",
    "ExFlashTimeoutResponse",
    "ExReadRangeCommand",
    "ExReadRangeResponse",
    "GetAttributeCommand",
    "GetAttributeResponse",
    "IdCommand",
    "InfoCommand",
    "InfoResponse",
    "InternalErrorResponse",
    "OkResponse",
    "OverflowResponse",
    "PingCommand",
    "PongResponse",
    "RESPONSE_TYPES",
    "ReadRangeCommand",
    "ReadRangeResponse",
    "ResetCommand",
    "SetAttributeCommand",
    "UnknownResponse",
    "WriteExPageCommand",
    "WriteFlashUserPagesCommand",
    "WritePageCommand",
]
