"""Codec for the Tock bootloader serial protocol used by tockloader."""

__version__ = "0.1.0"
