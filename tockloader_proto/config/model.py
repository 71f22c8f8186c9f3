"""Data model for codec configuration."""

from __future__ import annotations

from dataclasses import dataclass

from ..protocol.protocol import DEFAULT_BUFFER_CAPACITY

DEFAULT_HEXDUMP_FRAMES = False
DEFAULT_DEBUG_LOGGING = False
DEFAULT_LOG_SYSLOG = False


@dataclass(slots=True)
class CodecConfig:
    """Tunables shared by decoders and the logging setup."""

    buffer_capacity: int = DEFAULT_BUFFER_CAPACITY
    hexdump_frames: bool = DEFAULT_HEXDUMP_FRAMES
    debug_logging: bool = DEFAULT_DEBUG_LOGGING
    log_syslog: bool = DEFAULT_LOG_SYSLOG
