"""Incremental byte-at-a-time decoders for both protocol directions.

Commands end with ``FC <type>`` so their payload is buffered until the
trailing type byte names the layout. Responses start with ``FC <type>`` so
the expected size is known up front, except for range reads whose length
only the caller knows.
"""

from __future__ import annotations

import abc
import logging
from collections.abc import Callable, Iterable, Iterator
from typing import TYPE_CHECKING, Generic, Self, TypeVar

from transitions import Machine

from ..util import log_hexdump
from .buffer import DecodeBuffer
from .errors import (
    BadLengthError,
    CodecError,
    FrameOverflowError,
    InvalidValueError,
    MissingContextError,
    UnknownCommandTypeError,
    UnknownResponseTypeError,
)
from .escaping import is_escape
from .protocol import DEFAULT_BUFFER_CAPACITY, ESCAPE_CHAR, UINT16_MAX
from .structures import (
    COMMAND_TYPES,
    RESPONSE_TYPES,
    BaseCommand,
    BaseMessage,
    BaseResponse,
    ExReadRangeCommand,
    ReadRangeCommand,
    ResetCommand,
)

if TYPE_CHECKING:
    from ..config.model import CodecConfig

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseMessage)


class _FrameDecoder(abc.ABC, Generic[M]):
    """Shared buffer, error latch and logging for both decoders."""

    if TYPE_CHECKING:
        # FSM generated methods and attributes for static analysis
        fsm_state: str
        see_escape: Callable[[], None]
        load: Callable[[int], None]
        frame_done: Callable[[], None]
        fail: Callable[[], None]
        reset_fsm: Callable[[], None]

    # FSM States
    STATE_IDLE = "idle"
    STATE_ACCUMULATING = "accumulating"
    STATE_ESCAPE_SEEN = "escape_seen"
    STATE_ERROR = "error"

    def __init__(self, capacity: int = DEFAULT_BUFFER_CAPACITY, *, hexdump: bool = False) -> None:
        self._buffer = DecodeBuffer(capacity)
        self._hexdump = hexdump
        self._ignored = 0

        # FSM Initialization
        self.state_machine = Machine(
            model=self,
            states=self._fsm_states(),
            initial=self.STATE_IDLE,
            auto_transitions=False,
            ignore_invalid_triggers=True,
            model_attribute="fsm_state",
        )

        # FSM Transitions
        self.state_machine.add_transition(
            trigger="load",
            source=[self.STATE_IDLE, self.STATE_ACCUMULATING, self.STATE_ESCAPE_SEEN],
            dest=self.STATE_ACCUMULATING,
            before="_store",
        )
        self.state_machine.add_transition(trigger="fail", source="*", dest=self.STATE_ERROR)
        self.state_machine.add_transition(trigger="reset_fsm", source="*", dest=self.STATE_IDLE)
        self._add_transitions(self.state_machine)

    @classmethod
    def from_config(cls, config: CodecConfig) -> Self:
        return cls(config.buffer_capacity, hexdump=config.hexdump_frames)

    @property
    def capacity(self) -> int:
        return self._buffer.capacity

    @property
    def in_error(self) -> bool:
        return self.fsm_state == self.STATE_ERROR

    def reset(self) -> None:
        """Drop any partial frame and leave the error state."""
        logger.debug(
            "%s reset after ignoring %d bytes",
            type(self).__name__,
            self._ignored,
            extra={"decoder": type(self).__name__, "ignored_bytes": self._ignored},
        )
        self._buffer.clear()
        self._ignored = 0
        self.reset_fsm()

    def receive(self, byte: int) -> M | None:
        """Feed one wire byte; return a message when one completes.

        Raises a :class:`CodecError` subclass on malformed input, after
        which every byte is ignored until :meth:`reset`.
        """
        if not 0 <= byte <= 0xFF:
            raise ValueError(f"Byte value {byte} outside 0..255")
        if self.fsm_state == self.STATE_ERROR:
            self._ignored += 1
            return None
        try:
            return self._step(byte)
        except CodecError as exc:
            self._latch(exc)
            raise

    def receive_all(self, data: Iterable[int]) -> Iterator[M]:
        """Yield every message completed while feeding ``data``."""
        for byte in data:
            message = self.receive(byte)
            if message is not None:
                yield message

    def _fsm_states(self) -> list[str]:
        return [self.STATE_IDLE, self.STATE_ACCUMULATING, self.STATE_ESCAPE_SEEN, self.STATE_ERROR]

    @abc.abstractmethod
    def _add_transitions(self, machine: Machine) -> None:
        """Register the direction-specific transitions."""

    @abc.abstractmethod
    def _step(self, byte: int) -> M | None:
        """Advance the state machine by one byte."""

    def _store(self, byte: int) -> None:
        self._buffer.append(byte)

    def _latch(self, exc: CodecError) -> None:
        logger.warning(
            "%s entering error state: %s",
            type(self).__name__,
            exc,
            extra={"decoder": type(self).__name__, "error": type(exc).__name__, "from_state": self.fsm_state},
        )
        self._buffer.clear()
        self.fail()

    def _decode(self, message_type: type[M]) -> M:
        payload = bytes(self._buffer.view())
        if self._hexdump:
            log_hexdump(logger, logging.DEBUG, message_type.__name__, payload)
        message = message_type.decode(payload)
        self._buffer.clear()
        self.frame_done()
        logger.debug(
            "Decoded %s (%d payload bytes)",
            message_type.__name__,
            len(payload),
            extra={
                "decoder": type(self).__name__,
                "message_type": message_type.__name__,
                "payload_length": len(payload),
            },
        )
        return message


class CommandDecoder(_FrameDecoder[BaseCommand]):
    """Bootloader side: turns host bytes into commands."""

    def _add_transitions(self, machine: Machine) -> None:
        machine.add_transition(
            trigger="see_escape",
            source=[self.STATE_IDLE, self.STATE_ACCUMULATING],
            dest=self.STATE_ESCAPE_SEEN,
        )
        machine.add_transition(trigger="frame_done", source=self.STATE_ESCAPE_SEEN, dest=self.STATE_IDLE)

    def _step(self, byte: int) -> BaseCommand | None:
        if self.fsm_state == self.STATE_ESCAPE_SEEN:
            if is_escape(byte):
                self.load(ESCAPE_CHAR)
                return None
            return self._dispatch(byte)

        if is_escape(byte):
            self.see_escape()
        else:
            self.load(byte)
        return None

    def _dispatch(self, code: int) -> BaseCommand:
        command_type = COMMAND_TYPES.get(code)
        if command_type is None:
            raise UnknownCommandTypeError(code)
        command = self._decode(command_type)
        if isinstance(command, ResetCommand):
            self.reset()
        return command


class ResponseDecoder(_FrameDecoder[BaseResponse]):
    """Host side: turns bootloader bytes into responses."""

    if TYPE_CHECKING:
        open_frame: Callable[[], None]
        select_type: Callable[[], None]

    STATE_AWAIT_TYPE = "await_type"

    def __init__(self, capacity: int = DEFAULT_BUFFER_CAPACITY, *, hexdump: bool = False) -> None:
        self._read_length: int | None = None
        self._response_type: type[BaseResponse] | None = None
        self._expected = 0
        super().__init__(capacity, hexdump=hexdump)

    def expect_read_length(self, length: int | None) -> None:
        """Size the next ReadRange/ExReadRange response. ``None`` clears it."""
        if length is not None and (isinstance(length, bool) or not 0 <= length <= UINT16_MAX):
            raise InvalidValueError(f"Read length must be in 0..{UINT16_MAX}, got {length!r}")
        self._read_length = length

    def expect_response_to(self, command: BaseCommand) -> None:
        """Prepare for the reply to ``command`` about to be sent."""
        if isinstance(command, (ReadRangeCommand, ExReadRangeCommand)):
            self.expect_read_length(command.length)
        else:
            self._read_length = None

    def reset(self) -> None:
        super().reset()
        self._response_type = None
        self._expected = 0

    def _fsm_states(self) -> list[str]:
        return [*super()._fsm_states(), self.STATE_AWAIT_TYPE]

    def _add_transitions(self, machine: Machine) -> None:
        machine.add_transition(trigger="open_frame", source=self.STATE_IDLE, dest=self.STATE_AWAIT_TYPE)
        machine.add_transition(trigger="select_type", source=self.STATE_AWAIT_TYPE, dest=self.STATE_ACCUMULATING)
        machine.add_transition(trigger="see_escape", source=self.STATE_ACCUMULATING, dest=self.STATE_ESCAPE_SEEN)
        machine.add_transition(trigger="frame_done", source=self.STATE_ACCUMULATING, dest=self.STATE_IDLE)

    def _step(self, byte: int) -> BaseResponse | None:
        if self.fsm_state == self.STATE_IDLE:
            if not is_escape(byte):
                raise BadLengthError(f"Unexpected byte 0x{byte:02X} outside a response frame")
            self.open_frame()
            return None

        if self.fsm_state == self.STATE_AWAIT_TYPE:
            if is_escape(byte):
                raise BadLengthError("Escaped 0xFC outside a response frame")
            return self._select(byte)

        if self.fsm_state == self.STATE_ESCAPE_SEEN:
            if not is_escape(byte):
                raise BadLengthError(
                    f"New frame started after {len(self._buffer)} of {self._expected} payload bytes"
                )
            self.load(ESCAPE_CHAR)
            return self._complete_if_full()

        if is_escape(byte):
            self.see_escape()
            return None
        self.load(byte)
        return self._complete_if_full()

    def _select(self, code: int) -> BaseResponse | None:
        response_type = RESPONSE_TYPES.get(code)
        if response_type is None:
            raise UnknownResponseTypeError(code)

        expected = response_type.payload_size()
        if expected is None:
            if self._read_length is None:
                raise MissingContextError(f"{response_type.__name__} received without an expected length")
            expected = self._read_length
            self._read_length = None
        if expected > self._buffer.capacity:
            raise FrameOverflowError(
                f"{response_type.__name__} of {expected} bytes exceeds buffer capacity {self._buffer.capacity}"
            )

        self._buffer.clear()
        self._response_type = response_type
        self._expected = expected
        self.select_type()
        return self._complete_if_full()

    def _complete_if_full(self) -> BaseResponse | None:
        if len(self._buffer) < self._expected or self._response_type is None:
            return None
        response_type = self._response_type
        self._response_type = None
        self._expected = 0
        return self._decode(response_type)


__all__ = ["CommandDecoder", "ResponseDecoder"]
