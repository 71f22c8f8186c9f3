"""Tests for the bootloader-side command decoder."""

import logging
from unittest.mock import patch

import pytest
from transitions import Machine

from tockloader_proto.config import CodecConfig
from tockloader_proto.protocol import escaping
from tockloader_proto.protocol import (
    BadLengthError,
    BaudMode,
    ChangeBaudRateCommand,
    CommandDecoder,
    ErasePageCommand,
    FrameOverflowError,
    GetAttributeCommand,
    InvalidValueError,
    PingCommand,
    ResetCommand,
    SetAttributeCommand,
    UnknownCommandTypeError,
    WritePageCommand,
)
from tockloader_proto.protocol.decoder import _FrameDecoder
from tests.test_constants import TEST_ADDRESS, TEST_ADDRESS_BYTES, TEST_ATTRIBUTE_KEY, TEST_PAGE


def _feed(decoder: CommandDecoder, data: bytes) -> list:
    return list(decoder.receive_all(data))


class TestFraming:
    """Byte-level framing behaviour."""

    def test_ping(self, command_decoder: CommandDecoder) -> None:
        assert command_decoder.receive(0xFC) is None
        assert command_decoder.fsm_state == CommandDecoder.STATE_ESCAPE_SEEN
        assert command_decoder.receive(0x01) == PingCommand()
        assert command_decoder.fsm_state == CommandDecoder.STATE_IDLE

    def test_payload_then_type(self, command_decoder: CommandDecoder) -> None:
        assert _feed(command_decoder, b"\x00\x02\x00\x00\xfc\x06") == [ErasePageCommand(address=0x200)]

    def test_literal_escape_in_payload(self, command_decoder: CommandDecoder) -> None:
        frame = b"\xfc\xfc\x00\x00\x00\xfc\x06"
        assert _feed(command_decoder, frame) == [ErasePageCommand(address=0xFC)]

    def test_back_to_back_frames(self, command_decoder: CommandDecoder) -> None:
        frames = b"\xfc\x01" + b"\x07\xfc\x14" + b"\xfc\x01"
        assert _feed(command_decoder, frames) == [PingCommand(), GetAttributeCommand(index=7), PingCommand()]

    def test_write_page(self, command_decoder: CommandDecoder) -> None:
        commands = _feed(command_decoder, TEST_ADDRESS_BYTES + TEST_PAGE + b"\xfc\x07")
        assert commands == [WritePageCommand(address=TEST_ADDRESS, data=TEST_PAGE)]

    def test_set_attribute(self, command_decoder: CommandDecoder) -> None:
        frame = bytes([2]) + TEST_ATTRIBUTE_KEY + bytes([3]) + b"abc" + b"\xfc\x13"
        assert _feed(command_decoder, frame) == [
            SetAttributeCommand(index=2, key=TEST_ATTRIBUTE_KEY, length=3, value=b"abc")
        ]

    def test_change_baud_rate(self, command_decoder: CommandDecoder) -> None:
        frame = b"\x01\x00\xc2\x01\x00\xfc\x21"
        assert _feed(command_decoder, frame) == [ChangeBaudRateCommand(mode=BaudMode.SET, baud=115200)]

    def test_byte_out_of_range(self, command_decoder: CommandDecoder) -> None:
        with pytest.raises(ValueError):
            command_decoder.receive(0x100)
        assert not command_decoder.in_error


class TestErrors:
    """Malformed frames latch the decoder until reset."""

    def test_unknown_type_and_recovery(self, command_decoder: CommandDecoder) -> None:
        command_decoder.receive(0xFC)
        with pytest.raises(UnknownCommandTypeError, match="0x02") as excinfo:
            command_decoder.receive(0x02)
        assert excinfo.value.code == 0x02
        assert command_decoder.in_error

        assert _feed(command_decoder, b"\xfc\x01") == []
        command_decoder.reset()
        assert _feed(command_decoder, b"\xfc\x01") == [PingCommand()]

    def test_bad_length(self, command_decoder: CommandDecoder) -> None:
        with pytest.raises(BadLengthError):
            _feed(command_decoder, b"\x01\x02\xfc\x01")
        assert command_decoder.in_error

    def test_set_attribute_zero_length(self, command_decoder: CommandDecoder) -> None:
        frame = bytes([0]) + TEST_ATTRIBUTE_KEY + bytes([0]) + b"\xfc\x13"
        with pytest.raises(BadLengthError):
            _feed(command_decoder, frame)

    def test_unknown_baud_mode(self, command_decoder: CommandDecoder) -> None:
        with pytest.raises(InvalidValueError):
            _feed(command_decoder, b"\x07\x00\xc2\x01\x00\xfc\x21")

    def test_overflow(self, command_decoder: CommandDecoder) -> None:
        for _ in range(command_decoder.capacity):
            command_decoder.receive(0x00)
        with pytest.raises(FrameOverflowError):
            command_decoder.receive(0x00)
        assert command_decoder.in_error

    def test_error_logged_once(self, command_decoder: CommandDecoder, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.DEBUG, logger="tockloader_proto"):
            with pytest.raises(UnknownCommandTypeError):
                _feed(command_decoder, b"\xfc\x7f")
            _feed(command_decoder, b"\x01\x02\x03")
            command_decoder.reset()
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "ignoring 3 bytes" in caplog.text


class TestReset:
    """Reset handling."""

    def test_reset_command_clears_state(self, command_decoder: CommandDecoder) -> None:
        assert _feed(command_decoder, b"\xfc\x05") == [ResetCommand()]
        assert command_decoder.fsm_state == CommandDecoder.STATE_IDLE

    def test_reset_drops_partial_frame(self, command_decoder: CommandDecoder) -> None:
        _feed(command_decoder, b"\x01\x02\x03")
        command_decoder.reset()
        assert _feed(command_decoder, b"\xfc\x01") == [PingCommand()]


class TestStateMachine:
    """State transitions of the command FSM."""

    def test_machine(self, command_decoder: CommandDecoder) -> None:
        assert isinstance(command_decoder.state_machine, Machine)
        assert set(command_decoder.state_machine.states) == {
            CommandDecoder.STATE_IDLE,
            CommandDecoder.STATE_ACCUMULATING,
            CommandDecoder.STATE_ESCAPE_SEEN,
            CommandDecoder.STATE_ERROR,
        }

    def test_states_follow_bytes(self, command_decoder: CommandDecoder) -> None:
        states = []
        for byte in b"\x00\xfc\xfc\x00\x00\xfc\x06":
            command_decoder.receive(byte)
            states.append(command_decoder.fsm_state)
        assert states == [
            CommandDecoder.STATE_ACCUMULATING,
            CommandDecoder.STATE_ESCAPE_SEEN,
            CommandDecoder.STATE_ACCUMULATING,
            CommandDecoder.STATE_ACCUMULATING,
            CommandDecoder.STATE_ACCUMULATING,
            CommandDecoder.STATE_ESCAPE_SEEN,
            CommandDecoder.STATE_IDLE,
        ]

    def test_invalid_trigger_ignored(self, command_decoder: CommandDecoder) -> None:
        command_decoder.frame_done()
        assert command_decoder.fsm_state == CommandDecoder.STATE_IDLE

    def test_overflow_keeps_state_until_latched(self, command_decoder: CommandDecoder) -> None:
        for _ in range(command_decoder.capacity):
            command_decoder.receive(0x00)
        assert command_decoder.fsm_state == CommandDecoder.STATE_ACCUMULATING
        with pytest.raises(FrameOverflowError):
            command_decoder.receive(0x00)
        assert command_decoder.fsm_state == CommandDecoder.STATE_ERROR

    def test_bytes_classified_by_escaper(self, command_decoder: CommandDecoder) -> None:
        frame = b"\x00\x02\x00\x00\xfc\x06"
        with patch("tockloader_proto.protocol.decoder.is_escape", wraps=escaping.is_escape) as mock_is_escape:
            assert _feed(command_decoder, frame) == [ErasePageCommand(address=0x200)]
        assert [call.args[0] for call in mock_is_escape.call_args_list] == list(frame)

    def test_base_requires_step(self) -> None:
        class Incomplete(_FrameDecoder):
            def _add_transitions(self, machine: Machine) -> None:
                pass

        with pytest.raises(TypeError):
            Incomplete()


def test_from_config() -> None:
    decoder = CommandDecoder.from_config(CodecConfig(buffer_capacity=1024))
    assert decoder.capacity == 1024
