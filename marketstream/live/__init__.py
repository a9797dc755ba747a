"""
Live Market Data Stream Module.

This module keeps subscriptions to the lemon.markets tick and quote WebSocket
streams alive across connection drops, and delivers typed updates and errors
into caller-owned asyncio queues.

Components:
- StreamSupervisor: Connection lifecycle, reconnection, subscription replay
- SubscriptionRegistry: The instruments the caller wants streamed
- Codec: Message classification and tick/quote decoding
- DispatchSink: Non-blocking delivery into the caller's queues
- BackoffCounter: Linear reconnect backoff

Usage:
    from marketstream.live import open_quote_stream

    quotes: asyncio.Queue[Quote] = asyncio.Queue(maxsize=10_000)
    errors: asyncio.Queue[StreamError] = asyncio.Queue()

    stream = await open_quote_stream(quotes, errors)
    await stream.subscribe("US88160R1014")
    ...
    await stream.disconnect()
"""

from marketstream.live.config import (
    QUOTE_STREAM,
    TICK_STREAM,
    ConnectionConfig,
    SinkConfig,
    StreamKind,
)
from marketstream.live.connection import StreamSupervisor
from marketstream.live.errors import (
    ConfigurationError,
    ConnectFailed,
    ConnectionClosed,
    DecodeFailed,
    ErrorKind,
    InvalidRequest,
    LiveFeedError,
    StreamError,
    TransportFailure,
    UnknownInstrument,
)
from marketstream.live.settings import StreamSettings, load_settings
from marketstream.live.stream import (
    QuoteStream,
    TickStream,
    open_quote_stream,
    open_stream,
    open_tick_stream,
)
from marketstream.live.types import (
    ConnectionHealth,
    ConnectionState,
    Quote,
    Tick,
    UpdateKind,
)

__all__ = [
    # Main entry points
    "StreamSupervisor",
    "open_stream",
    "open_tick_stream",
    "open_quote_stream",
    "TickStream",
    "QuoteStream",
    # Configuration
    "ConnectionConfig",
    "SinkConfig",
    "StreamKind",
    "StreamSettings",
    "load_settings",
    "TICK_STREAM",
    "QUOTE_STREAM",
    # Types
    "ConnectionState",
    "ConnectionHealth",
    "UpdateKind",
    "Tick",
    "Quote",
    # Errors
    "LiveFeedError",
    "ConfigurationError",
    "StreamError",
    "ErrorKind",
    "ConnectFailed",
    "ConnectionClosed",
    "TransportFailure",
    "UnknownInstrument",
    "InvalidRequest",
    "DecodeFailed",
]
