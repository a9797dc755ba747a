"""
Per-kind stream constructors.

open_tick_stream / open_quote_stream build a StreamSupervisor wired for one
update kind and connect it. A failure of that first connect raises
ConnectFailed; after that, every failure goes to the error queue.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from marketstream.live.config import (
    QUOTE_STREAM,
    TICK_STREAM,
    ConnectionConfig,
    SinkConfig,
    StreamKind,
    U,
)
from marketstream.live.connection import StreamSupervisor
from marketstream.live.errors import StreamError
from marketstream.live.types import Quote, Tick
from marketstream.ports.transport import Transport

TickStream = StreamSupervisor[Tick]
QuoteStream = StreamSupervisor[Quote]


async def open_stream(
    kind: StreamKind[U],
    updates: asyncio.Queue[U],
    errors: asyncio.Queue[StreamError],
    *,
    transport: Optional[Transport] = None,
    config: Optional[ConnectionConfig] = None,
    sink_config: Optional[SinkConfig] = None,
    name: Optional[str] = None,
) -> StreamSupervisor[U]:
    """Create a supervisor for kind and run its first connect."""
    stream = StreamSupervisor(
        kind,
        updates,
        errors,
        transport=transport,
        config=config,
        sink_config=sink_config,
        name=name,
    )
    await stream.connect()
    return stream


async def open_tick_stream(
    updates: asyncio.Queue[Tick],
    errors: asyncio.Queue[StreamError],
    *,
    url: Optional[str] = None,
    transport: Optional[Transport] = None,
    config: Optional[ConnectionConfig] = None,
    sink_config: Optional[SinkConfig] = None,
) -> StreamSupervisor[Tick]:
    """
    Connect to the tick stream.

    Example:
        ticks: asyncio.Queue[Tick] = asyncio.Queue(maxsize=10_000)
        errors: asyncio.Queue[StreamError] = asyncio.Queue()
        stream = await open_tick_stream(ticks, errors)
        await stream.subscribe("DE000TUAG000")
    """
    kind = TICK_STREAM.with_url(url) if url else TICK_STREAM
    return await open_stream(
        kind, updates, errors, transport=transport, config=config, sink_config=sink_config
    )


async def open_quote_stream(
    updates: asyncio.Queue[Quote],
    errors: asyncio.Queue[StreamError],
    *,
    url: Optional[str] = None,
    transport: Optional[Transport] = None,
    config: Optional[ConnectionConfig] = None,
    sink_config: Optional[SinkConfig] = None,
) -> StreamSupervisor[Quote]:
    """Connect to the quote stream."""
    kind = QUOTE_STREAM.with_url(url) if url else QUOTE_STREAM
    return await open_stream(
        kind, updates, errors, transport=transport, config=config, sink_config=sink_config
    )
