"""Settings loader for the codec.

Values come from an explicit mapping when one is given, otherwise from
``TOCKPROTO_*`` environment variables. Anything missing falls back to the
schema defaults.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from typing import Any

from marshmallow import ValidationError

from .model import CodecConfig
from .schema import CodecConfigSchema

logger = logging.getLogger(__name__)

ENV_PREFIX = "TOCKPROTO_"
_ENV_KEYS = ("buffer_capacity", "hexdump_frames", "debug_logging", "log_syslog")


def _from_environment() -> dict[str, Any]:
    raw: dict[str, Any] = {}
    for key in _ENV_KEYS:
        value = os.environ.get(f"{ENV_PREFIX}{key.upper()}")
        if value is not None and value.strip():
            raw[key] = value.strip()
    return raw


def load_codec_config(raw: Mapping[str, Any] | None = None) -> CodecConfig:
    """Validate settings and build a :class:`CodecConfig`.

    Raises:
        ValueError: a setting is out of range or malformed.
    """
    source = dict(raw) if raw is not None else _from_environment()
    try:
        config: CodecConfig = CodecConfigSchema().load(source)
    except ValidationError as exc:
        raise ValueError(f"Invalid codec configuration: {exc.messages}") from exc
    logger.debug("Loaded codec configuration: %s", config)
    return config


__all__ = ["ENV_PREFIX", "load_codec_config"]
