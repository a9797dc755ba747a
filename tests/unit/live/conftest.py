"""
Shared fixtures for live stream tests.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import pytest

from marketstream.live.config import ConnectionConfig
from tests.unit.live.fakes import FakeTransport


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def fast_config() -> ConnectionConfig:
    """Reconnects within milliseconds."""
    return ConnectionConfig(
        connect_timeout_s=1.0,
        send_timeout_s=0.05,
        heartbeat_s=None,
        backoff_unit_s=0.01,
        min_reconnect_delay_s=0.01,
        max_backoff_steps=3,
    )


@pytest.fixture
def eventually() -> Callable[[Callable[[], bool]], Awaitable[None]]:
    """Poll a condition until it holds (or fail after a timeout)."""

    async def _wait(condition: Callable[[], bool], timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not condition():
            if loop.time() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(0.005)

    return _wait
