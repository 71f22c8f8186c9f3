"""Configuration for the codec: model, validation schema, loader and logging."""

from .logging import configure_logging
from .model import CodecConfig
from .schema import CodecConfigSchema
from .settings import load_codec_config

__all__ = ["CodecConfig", "CodecConfigSchema", "configure_logging", "load_codec_config"]
