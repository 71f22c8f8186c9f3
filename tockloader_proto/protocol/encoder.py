"""Frame encoders producing escaped wire bytes one at a time."""

from __future__ import annotations

import abc
import logging
from collections.abc import Iterator

from construct import ConstructError  # type: ignore

from .errors import InvalidValueError
from .escaping import escape
from .protocol import ESCAPE_CHAR
from .structures import BaseCommand, BaseMessage, BaseResponse

logger = logging.getLogger(__name__)


class _FrameEncoder(Iterator[int]):
    """Emits ``prefix``, the escaped payload, then ``suffix``.

    Only the payload is escaped: the delimiter pair around it is raw.
    The encoder is exhausted exactly once and cannot be restarted.
    """

    def __init__(self, message: BaseMessage) -> None:
        self._prefix, self._suffix = self._delimiters(message)
        message.validate()
        try:
            self._payload = message.encode()
        except (ConstructError, TypeError) as exc:
            raise InvalidValueError(f"Cannot encode {type(message).__name__}: {exc}") from exc
        self._message = message
        self._prefix_pos = 0
        self._payload_pos = 0
        self._suffix_pos = 0
        # Wire form of the payload byte being emitted, one or two bytes.
        self._chunk = b""
        self._chunk_pos = 0
        logger.debug(
            "Encoding %s (%d payload bytes)",
            type(message).__name__,
            len(self._payload),
            extra={"message_type": type(message).__name__, "payload_length": len(self._payload)},
        )

    @abc.abstractmethod
    def _delimiters(self, message: BaseMessage) -> tuple[bytes, bytes]:
        """Return the raw bytes framing the payload, before and after it."""

    @property
    def message(self) -> BaseMessage:
        return self._message

    def next_byte(self) -> int | None:
        """Return the next wire byte, or ``None`` once the frame is done."""
        if self._prefix_pos < len(self._prefix):
            byte = self._prefix[self._prefix_pos]
            self._prefix_pos += 1
            return byte
        if self._chunk_pos < len(self._chunk):
            byte = self._chunk[self._chunk_pos]
            self._chunk_pos += 1
            return byte
        if self._payload_pos < len(self._payload):
            self._chunk = escape(self._payload[self._payload_pos])
            self._payload_pos += 1
            self._chunk_pos = 1
            return self._chunk[0]
        if self._suffix_pos < len(self._suffix):
            byte = self._suffix[self._suffix_pos]
            self._suffix_pos += 1
            return byte
        return None

    def __iter__(self) -> Iterator[int]:
        return self

    def __next__(self) -> int:
        byte = self.next_byte()
        if byte is None:
            raise StopIteration
        return byte


class CommandEncoder(_FrameEncoder):
    """``[escaped payload] FC <type>``"""

    def _delimiters(self, message: BaseMessage) -> tuple[bytes, bytes]:
        if not isinstance(message, BaseCommand):
            raise InvalidValueError(f"{type(message).__name__} is not a command")
        return b"", bytes((ESCAPE_CHAR, message.CODE))


class ResponseEncoder(_FrameEncoder):
    """``FC <type> [escaped payload]``"""

    def _delimiters(self, message: BaseMessage) -> tuple[bytes, bytes]:
        if not isinstance(message, BaseResponse):
            raise InvalidValueError(f"{type(message).__name__} is not a response")
        return bytes((ESCAPE_CHAR, message.CODE)), b""


def encode_command(command: BaseCommand) -> bytes:
    """Return the complete wire frame for ``command``."""
    return bytes(CommandEncoder(command))


def encode_response(response: BaseResponse) -> bytes:
    """Return the complete wire frame for ``response``."""
    return bytes(ResponseEncoder(response))


__all__ = ["CommandEncoder", "ResponseEncoder", "encode_command", "encode_response"]
