"""Shared fixtures for tests."""

from __future__ import annotations

import pytest

from term_relay.gateway import ConnectionGateway
from term_relay.logging.array import ArraySessionLogger
from term_relay.session import RelaySession
from term_relay.types import LoggingMode, RelayServerConfig

from .fakes import FakeAdapter, FakeChannel


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def adapter():
    return FakeAdapter()


@pytest.fixture
def events_logger():
    return ArraySessionLogger(LoggingMode.VERBOSE)


@pytest.fixture
def session(channel, adapter, events_logger):
    return RelaySession(
        channel,
        lambda: adapter,
        cleanup_timeout=0.5,
        events_logger=events_logger,
    )


@pytest.fixture
def config():
    return RelayServerConfig(host="127.0.0.1", port=0, cleanup_timeout_ms=500)


@pytest.fixture
def gateway(config, adapter):
    return ConnectionGateway(config, adapter_factory=lambda: adapter)
