"""Pytest fixtures shared across the monitor-stream test suite."""

from __future__ import annotations

import pytest

from tests.helpers import FakeConnector, FakeLoop


@pytest.fixture()
def fake_loop() -> FakeLoop:
    """Return a fresh manually advanced clock."""
    return FakeLoop()


@pytest.fixture()
def connector() -> FakeConnector:
    """Return a connector whose sockets open successfully."""
    return FakeConnector()
