"""Pytest configuration for tockloader_proto tests."""

from __future__ import annotations

import pytest

from tockloader_proto.protocol import CommandDecoder, ResponseDecoder


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "fuzz: randomized robustness test with a fixed seed")


@pytest.fixture
def command_decoder() -> CommandDecoder:
    return CommandDecoder()


@pytest.fixture
def response_decoder() -> ResponseDecoder:
    return ResponseDecoder()
