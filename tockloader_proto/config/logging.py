"""Logging setup for the codec.

Decoders and encoders attach structured fields to their records through
``extra`` (``decoder``, ``message_type``, ``payload_length`` ...). The JSON
formatter groups those under ``codec`` so frame traffic can be filtered
without parsing the message text.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from logging import Handler
from logging.config import dictConfig
from logging.handlers import SysLogHandler
from pathlib import Path
from typing import Any, Final

import msgspec

from .model import CodecConfig

LOGGER_NAME: Final[str] = "tockloader_proto"

SYSLOG_SOCKET = Path("/dev/log")
SYSLOG_SOCKET_FALLBACK = Path("/var/run/log")

CODEC_FIELDS: Final[tuple[str, ...]] = (
    "decoder",
    "message_type",
    "payload_length",
    "ignored_bytes",
    "error",
    "from_state",
)

_RESERVED_LOG_KEYS: Final[frozenset[str]] = frozenset(
    vars(logging.LogRecord("", logging.NOTSET, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def _render(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        # Frame bytes stay binary in logs: [FC 01]
        return f"[{bytes(value).hex(' ').upper()}]"
    if isinstance(value, msgspec.Struct):
        return type(value).__name__
    return str(value)


class StructuredLogFormatter(logging.Formatter):
    """One JSON object per record, codec fields grouped under ``codec``."""

    PREFIX = f"{LOGGER_NAME}."

    def format(self, record: logging.LogRecord) -> str:
        logger_name = record.name
        if logger_name.startswith(self.PREFIX):
            logger_name = logger_name[len(self.PREFIX) :]

        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": logger_name,
            "message": record.getMessage(),
        }

        codec: dict[str, Any] = {}
        extras: dict[str, Any] = {}
        for key, value in record.__dict__.items():
            if key in _RESERVED_LOG_KEYS or key.startswith("_"):
                continue
            target = codec if key in CODEC_FIELDS else extras
            target[key] = _render(value)
        if codec:
            payload["codec"] = codec
        if extras:
            payload["extra"] = extras

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return msgspec.json.encode(payload).decode("utf-8")


def _syslog_address() -> str | None:
    for candidate in (SYSLOG_SOCKET, SYSLOG_SOCKET_FALLBACK):
        if candidate.exists():
            return str(candidate)
    return None


def _build_handler(use_syslog: bool = False) -> Handler:
    address = _syslog_address() if use_syslog else None
    if address is None:
        return logging.StreamHandler()
    handler = SysLogHandler(address=address, facility=SysLogHandler.LOG_USER)
    handler.ident = f"{LOGGER_NAME} "
    return handler


def configure_logging(config: CodecConfig) -> None:
    """Route the codec's loggers to a structured handler.

    Only the ``tockloader_proto`` logger tree is configured; the host
    application's root logger is left alone.
    """

    level_name = "DEBUG" if config.debug_logging else "INFO"

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {
                    "()": f"{LOGGER_NAME}.config.logging.StructuredLogFormatter",
                }
            },
            "handlers": {
                "codec": {
                    "()": _build_handler,
                    "use_syslog": config.log_syslog,
                    "level": level_name,
                    "formatter": "structured",
                }
            },
            "loggers": {
                LOGGER_NAME: {
                    "level": level_name,
                    "handlers": ["codec"],
                    "propagate": False,
                }
            },
        }
    )

    logging.getLogger(LOGGER_NAME).info(
        "Codec logging configured at level %s", level_name, extra={"hexdump_frames": config.hexdump_frames}
    )


__all__ = ["CODEC_FIELDS", "StructuredLogFormatter", "configure_logging"]
