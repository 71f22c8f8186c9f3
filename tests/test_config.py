"""Tests for codec configuration loading."""

import pytest

from tockloader_proto.config import CodecConfig, CodecConfigSchema, load_codec_config
from tockloader_proto.protocol import ResponseDecoder


def test_defaults_from_empty_mapping() -> None:
    assert load_codec_config({}) == CodecConfig()


def test_mapping_values() -> None:
    config = load_codec_config({"buffer_capacity": 4096, "debug_logging": "yes", "hexdump_frames": True})
    assert config.buffer_capacity == 4096
    assert config.debug_logging is True
    assert config.hexdump_frames is True


@pytest.mark.parametrize("capacity", [519, 0, 70000])
def test_capacity_bounds(capacity: int) -> None:
    with pytest.raises(ValueError, match="buffer_capacity"):
        load_codec_config({"buffer_capacity": capacity})


def test_hexdump_requires_debug() -> None:
    with pytest.raises(ValueError, match="hexdump_frames"):
        load_codec_config({"hexdump_frames": True})


def test_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TOCKPROTO_BUFFER_CAPACITY", "2048")
    monkeypatch.setenv("TOCKPROTO_LOG_SYSLOG", "1")
    monkeypatch.setenv("TOCKPROTO_DEBUG_LOGGING", "  ")
    config = load_codec_config()
    assert config.buffer_capacity == 2048
    assert config.log_syslog is True
    assert config.debug_logging is False


def test_environment_invalid(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TOCKPROTO_BUFFER_CAPACITY", "lots")
    with pytest.raises(ValueError):
        load_codec_config()


def test_schema_ignores_unknown_keys() -> None:
    config = CodecConfigSchema().load({"serial_port": "/dev/ttyACM0"})
    assert isinstance(config, CodecConfig)


def test_decoder_from_loaded_config() -> None:
    decoder = ResponseDecoder.from_config(load_codec_config({"buffer_capacity": 65544}))
    decoder.expect_read_length(0xFFFF)
    assert decoder.capacity == 65544
