"""Transport Port Interface.

Contract: A duplex, message-oriented connection (WebSocket-style) that can fail
at any time. The stream supervisor only depends on this port; the production
adapter lives in marketstream.adapters.aiohttp_transport.
"""

from __future__ import annotations

from typing import Protocol


class Channel(Protocol):
    """One live connection."""

    @property
    def closed(self) -> bool: ...

    async def receive(self) -> bytes:
        """Block until the next message payload arrives.

        Raises ChannelClosed when the peer (or close()) ended the connection,
        any other exception on transport failure.
        """
        ...

    async def send(self, data: bytes) -> None:
        """Write one message. Raises on failure."""
        ...

    async def close(self) -> None:
        """Close the connection. Must be safe to call more than once."""
        ...


class Transport(Protocol):
    async def dial(self, url: str, *, timeout: float) -> Channel:
        """Open a new channel to url. Raises on failure."""
        ...

    async def close(self) -> None:
        """Release resources shared by all channels."""
        ...
