"""Marshmallow schema for CodecConfig validation."""

from __future__ import annotations

from typing import Any, Dict

from marshmallow import EXCLUDE, Schema, ValidationError, fields, post_load, validate, validates_schema

from ..protocol.protocol import MAX_BUFFER_CAPACITY, MIN_BUFFER_CAPACITY
from .model import (
    DEFAULT_BUFFER_CAPACITY,
    DEFAULT_DEBUG_LOGGING,
    DEFAULT_HEXDUMP_FRAMES,
    DEFAULT_LOG_SYSLOG,
    CodecConfig,
)


class CodecConfigSchema(Schema):
    """Declarative validation schema for codec settings."""

    class Meta:
        unknown = EXCLUDE

    buffer_capacity = fields.Int(
        load_default=DEFAULT_BUFFER_CAPACITY,
        validate=validate.Range(min=MIN_BUFFER_CAPACITY, max=MAX_BUFFER_CAPACITY),
    )
    hexdump_frames = fields.Bool(load_default=DEFAULT_HEXDUMP_FRAMES)
    debug_logging = fields.Bool(load_default=DEFAULT_DEBUG_LOGGING)
    log_syslog = fields.Bool(load_default=DEFAULT_LOG_SYSLOG)

    @validates_schema
    def validate_hexdump_level(self, data: Dict[str, Any], **kwargs: Any) -> None:
        # Hexdumps are emitted at DEBUG and would never reach a handler otherwise.
        if data.get("hexdump_frames") and not data.get("debug_logging"):
            raise ValidationError(
                "hexdump_frames requires debug_logging",
                field_name="hexdump_frames",
            )

    @post_load
    def make_config(self, data: Dict[str, Any], **kwargs: Any) -> CodecConfig:
        return CodecConfig(**data)
