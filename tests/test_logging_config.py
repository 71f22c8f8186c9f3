"""Tests for the logging configuration."""

import json
import logging
from unittest.mock import patch

import pytest

from tockloader_proto.config import CodecConfig, configure_logging
from tockloader_proto.config import logging as log_mod
from tockloader_proto.protocol import CommandCode, CommandDecoder, UnknownCommandTypeError


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="tockloader_proto.protocol.decoder",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="hello",
        args=(),
        exc_info=None,
    )
    record.__dict__.update(extra)
    return record


def test_formatter_renders_bytes_and_objects() -> None:
    custom_obj = object()
    formatter = log_mod.StructuredLogFormatter()
    payload = json.loads(formatter.format(_record(frame=b"\xfc\x01", custom_obj=custom_obj)))

    assert payload["logger"] == "protocol.decoder"
    assert payload["message"] == "hello"
    assert payload["extra"]["frame"] == "[FC 01]"
    assert payload["extra"]["custom_obj"] == str(custom_obj)
    assert "codec" not in payload


def test_formatter_groups_codec_fields() -> None:
    formatter = log_mod.StructuredLogFormatter()
    record = _record(decoder="CommandDecoder", message_type=CommandCode.WRITE_PAGE, payload_length=516)
    payload = json.loads(formatter.format(record))

    assert payload["codec"] == {
        "decoder": "CommandDecoder",
        "message_type": "WRITE_PAGE",
        "payload_length": 516,
    }
    assert "extra" not in payload


def test_decoder_records_through_formatter(caplog: pytest.LogCaptureFixture) -> None:
    decoder = CommandDecoder()
    with caplog.at_level(logging.DEBUG, logger="tockloader_proto"):
        list(decoder.receive_all(b"\x00\x02\x00\x00\xfc\x06"))
        with pytest.raises(UnknownCommandTypeError):
            list(decoder.receive_all(b"\xfc\x7f"))
        list(decoder.receive_all(b"\x01\x02"))
        decoder.reset()

    formatter = log_mod.StructuredLogFormatter()
    rendered = [json.loads(formatter.format(r)) for r in caplog.records if r.name.startswith("tockloader_proto")]
    codec = [entry["codec"] for entry in rendered if "codec" in entry]

    assert {
        "decoder": "CommandDecoder",
        "message_type": "ErasePageCommand",
        "payload_length": 4,
    } in codec
    assert {
        "decoder": "CommandDecoder",
        "error": "UnknownCommandTypeError",
        "from_state": CommandDecoder.STATE_ESCAPE_SEEN,
    } in codec
    assert {"decoder": "CommandDecoder", "ignored_bytes": 2} in codec

    warnings = [entry for entry in rendered if entry["level"] == "WARNING"]
    assert len(warnings) == 1
    assert warnings[0]["logger"] == "protocol.decoder"


def test_configure_logging_syslog(tmp_path) -> None:
    fake_socket = tmp_path / "log"
    fake_socket.touch()

    with patch("tockloader_proto.config.logging.SYSLOG_SOCKET", fake_socket):
        with patch("tockloader_proto.config.logging.dictConfig") as mock_dict_config:
            configure_logging(CodecConfig(debug_logging=True, log_syslog=True))

    config = mock_dict_config.call_args.args[0]
    handler = config["handlers"]["codec"]
    assert handler["level"] == "DEBUG"
    assert handler["use_syslog"] is True
    assert config["loggers"]["tockloader_proto"]["level"] == "DEBUG"
    assert "root" not in config

    with patch("tockloader_proto.config.logging.SysLogHandler") as mock_syslog:
        with patch("tockloader_proto.config.logging.SYSLOG_SOCKET", fake_socket):
            log_mod._build_handler(use_syslog=True)
    mock_syslog.assert_called_once()
    assert mock_syslog.call_args.kwargs["address"] == str(fake_socket)


def test_build_handler_falls_back_to_stream(tmp_path) -> None:
    missing = tmp_path / "missing"
    with patch("tockloader_proto.config.logging.SYSLOG_SOCKET", missing), patch(
        "tockloader_proto.config.logging.SYSLOG_SOCKET_FALLBACK", missing
    ):
        handler = log_mod._build_handler(use_syslog=True)
    assert type(handler) is logging.StreamHandler
    assert type(log_mod._build_handler()) is logging.StreamHandler


def test_configure_logging_stream() -> None:
    with patch("tockloader_proto.config.logging.dictConfig") as mock_dict_config:
        configure_logging(CodecConfig())

    config = mock_dict_config.call_args.args[0]
    assert config["handlers"]["codec"]["use_syslog"] is False
    assert config["loggers"]["tockloader_proto"] == {
        "level": "INFO",
        "handlers": ["codec"],
        "propagate": False,
    }
    assert config["formatters"]["structured"]["()"].endswith("StructuredLogFormatter")


def test_decoder_hexdump(caplog: pytest.LogCaptureFixture) -> None:
    decoder = CommandDecoder(hexdump=True)
    with caplog.at_level(logging.DEBUG, logger="tockloader_proto"):
        list(decoder.receive_all(b"\x05\xfc\x14"))
    assert "[HEXDUMP] GetAttributeCommand: 05" in caplog.text
