"""aiohttp WebSocket adapter for the Transport port.

Handles the raw WebSocket details: connection establishment with timeout,
ping/pong keepalive (aiohttp heartbeat), and mapping of close frames to
ChannelClosed. It does NOT parse messages - payloads are handed over as bytes.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp

from marketstream.live.errors import ChannelClosed

logger = logging.getLogger(__name__)

_CLOSE_TYPES = (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED)


class AiohttpChannel:
    """A single aiohttp WebSocket connection."""

    def __init__(self, ws: aiohttp.ClientWebSocketResponse, url: str) -> None:
        self._ws = ws
        self._url = url

    @property
    def closed(self) -> bool:
        return self._ws.closed

    @property
    def close_code(self) -> Optional[int]:
        return self._ws.close_code

    async def receive(self) -> bytes:
        """Return the next TEXT/BINARY payload; control frames are consumed here."""
        while True:
            msg = await self._ws.receive()

            if msg.type == aiohttp.WSMsgType.TEXT:
                return msg.data.encode("utf-8")

            elif msg.type == aiohttp.WSMsgType.BINARY:
                return bytes(msg.data)

            elif msg.type in _CLOSE_TYPES:
                code = self._ws.close_code
                if code is None and isinstance(msg.data, int):
                    code = msg.data
                reason = msg.extra if isinstance(msg.extra, str) else ""
                logger.debug(f"Server closed connection {self._url} (code={code})")
                raise ChannelClosed(code, reason, component="AiohttpChannel")

            elif msg.type == aiohttp.WSMsgType.ERROR:
                exc = msg.data if isinstance(msg.data, BaseException) else self._ws.exception()
                if exc is None:
                    exc = aiohttp.ClientError("WebSocket error")
                raise exc

            # PING/PONG: answered by aiohttp (autoping), nothing to deliver

    async def send(self, data: bytes) -> None:
        if self._ws.closed:
            raise ChannelClosed(self._ws.close_code, "send on closed channel")
        await self._ws.send_str(data.decode("utf-8"))

    async def close(self) -> None:
        if not self._ws.closed:
            await self._ws.close()


class AiohttpTransport:
    """
    Dials WebSocket channels over one shared aiohttp.ClientSession.

    Usage:
        transport = AiohttpTransport(heartbeat_s=20.0)
        channel = await transport.dial("wss://api.lemon.markets/streams/v1/quotes", timeout=30)
        ...
        await transport.close()
    """

    def __init__(
        self,
        heartbeat_s: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._heartbeat_s = heartbeat_s
        self._session = session
        self._owns_session = session is None

    async def dial(self, url: str, *, timeout: float) -> AiohttpChannel:
        """Open a WebSocket to url; raises on handshake failure or timeout."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True

        logger.info(f"Connecting to {url}")
        ws = await asyncio.wait_for(
            self._session.ws_connect(url, heartbeat=self._heartbeat_s),
            timeout=timeout,
        )
        logger.info(f"Connected to {url}")
        return AiohttpChannel(ws, url)

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
