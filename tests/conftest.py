"""Pytest configuration and shared fixtures."""

import pytest

from fakes import BOT, FakeStream, FakeWriter
from rtmbot.models.session import BotIdentity


@pytest.fixture
def stream() -> FakeStream:
    return FakeStream()


@pytest.fixture
def writer() -> FakeWriter:
    return FakeWriter()


@pytest.fixture
def bot_identity() -> BotIdentity:
    return BOT
