"""
Stream supervisor for live market data.

Owns the single transport connection of one logical stream (ticks or quotes)
and handles:
- Connection establishment with timeout
- Subscription tracking that survives reconnects (replayed on every connect)
- A listen loop per live connection that classifies and dispatches messages
- Linear backoff reconnection, retried until disconnect()
- Connection-level metrics and health tracking

State Machine:
    [INITIALIZING] --connect()--> [CONNECTING] --ok--> [CONNECTED]
                                       ^                    |
                                       |              transport failure
                                       |                    v
                                       +---backoff--- [WAITING_TO_RECONNECT]

    any state --disconnect()--> [DISCONNECTED] (terminal)
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Generic, Optional

from marketstream.live.backoff import BackoffCounter
from marketstream.live.codec import classify, encode_control
from marketstream.live.config import (
    GRACEFUL_CLOSE_CODES,
    ConnectionConfig,
    SinkConfig,
    StreamKind,
    U,
)
from marketstream.live.errors import (
    ChannelClosed,
    ConnectFailed,
    ConnectionClosed,
    DecodeFailed,
    InvalidRequest,
    StreamError,
    TransportFailure,
    UnknownInstrument,
)
from marketstream.live.registry import SubscriptionRegistry
from marketstream.live.sink import DispatchSink
from marketstream.live.types import (
    ConnectionHealth,
    ConnectionMetrics,
    ConnectionState,
    ControlAction,
    ControlMessage,
    InstrumentId,
    MessageClass,
)
from marketstream.ports.transport import Channel, Transport

logger = logging.getLogger(__name__)

_PREVIEW_CHARS = 200


class StreamSupervisor(Generic[U]):
    """
    Keeps one logical market data stream alive.

    The caller owns the queues. Updates of the stream's kind go to `updates`,
    every StreamError goes to `errors` (which may be shared between streams).
    Only the very first connect() can raise; everything after that is reported
    through the error queue.

    Usage:
        updates: asyncio.Queue[Quote] = asyncio.Queue(maxsize=10_000)
        errors: asyncio.Queue[StreamError] = asyncio.Queue()

        stream = StreamSupervisor(QUOTE_STREAM, updates, errors)
        await stream.connect()
        await stream.subscribe("US88160R1014")
        # ... consume updates ...
        await stream.disconnect()
    """

    def __init__(
        self,
        kind: StreamKind[U],
        updates: asyncio.Queue[U],
        errors: asyncio.Queue[StreamError],
        *,
        transport: Optional[Transport] = None,
        config: Optional[ConnectionConfig] = None,
        sink_config: Optional[SinkConfig] = None,
        name: Optional[str] = None,
    ) -> None:
        """
        Initialize the supervisor. Nothing is dialed until connect().

        Args:
            kind: Per-kind wiring (endpoint, specifier, decoder)
            updates: Caller-owned queue receiving decoded updates
            errors: Caller-owned queue receiving StreamError instances
            transport: Transport to dial with (defaults to aiohttp)
            config: Connection configuration
            sink_config: Drop policy for full queues
            name: Name for logging purposes (defaults to the kind name)
        """
        self._kind = kind
        self._config = config or ConnectionConfig()
        self._sink_config = sink_config or SinkConfig()
        self._name = name or kind.name

        self._owns_transport = transport is None
        if transport is None:
            # Imported here: the adapter itself depends on marketstream.live
            from marketstream.adapters.aiohttp_transport import AiohttpTransport

            transport = AiohttpTransport(heartbeat_s=self._config.heartbeat_s)
        self._transport: Transport = transport

        # Sinks
        self._updates: DispatchSink[U] = DispatchSink(
            updates, self._sink_config, name=f"{self._name}_updates"
        )
        self._errors: DispatchSink[StreamError] = DispatchSink(
            errors, self._sink_config, name=f"{self._name}_errors"
        )
        self._raw_tap: Optional[DispatchSink[bytes]] = None

        # State, guarded by _lock where a send is involved
        self._state = ConnectionState.INITIALIZING
        self._registry = SubscriptionRegistry()
        self._backoff = BackoffCounter(self._config)
        self._lock = asyncio.Lock()
        self._channel: Optional[Channel] = None

        # Channel we closed ourselves after a failed send, and why
        self._aborted_channel: Optional[Channel] = None
        self._abort_reason = ""

        # Tasks
        self._listen_task: Optional[asyncio.Task[None]] = None
        self._reconnect_task: Optional[asyncio.Task[None]] = None

        # Metrics
        self._metrics = ConnectionMetrics()
        self._last_error: Optional[str] = None
        self._last_error_at: Optional[datetime] = None

    # --- Introspection ---

    @property
    def name(self) -> str:
        return self._name

    @property
    def kind(self) -> StreamKind[U]:
        return self._kind

    @property
    def url(self) -> str:
        return self._kind.url

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def subscriptions(self) -> frozenset[InstrumentId]:
        """Instruments the caller currently wants streamed."""
        return frozenset(self._registry.snapshot())

    @property
    def failed_attempts(self) -> int:
        """Consecutive failed reconnect attempts since the last success."""
        return self._backoff.count

    @property
    def metrics(self) -> ConnectionMetrics:
        self._metrics.dropped = self._dropped()
        return self._metrics

    def get_state(self) -> ConnectionState:
        return self._state

    def get_subscriptions(self) -> frozenset[InstrumentId]:
        return self.subscriptions

    def _set_state(self, new_state: ConnectionState) -> None:
        old_state = self._state
        if old_state == ConnectionState.DISCONNECTED:
            return
        self._state = new_state
        if old_state != new_state:
            logger.debug(f"[{self._name}] State: {old_state.value} -> {new_state.value}")

    # --- Lifecycle ---

    async def connect(self) -> None:
        """
        Establish the first connection.

        A failure here is not retried; the supervisor goes back to INITIALIZING,
        releases a transport it created itself and connect() may be called again.

        Raises:
            ConnectFailed: If the first dial fails
        """
        if self._state != ConnectionState.INITIALIZING:
            logger.warning(f"[{self._name}] connect() ignored in state {self._state.value}")
            return

        self._set_state(ConnectionState.CONNECTING)
        try:
            channel = await self._dial()
        except asyncio.CancelledError:
            self._set_state(ConnectionState.INITIALIZING)
            await self._close_owned_transport()
            raise
        except Exception as e:
            if self._state == ConnectionState.DISCONNECTED:
                return
            self._set_state(ConnectionState.INITIALIZING)
            self._record_error(str(e))
            logger.error(f"[{self._name}] Connection to {self.url} failed: {e}")
            await self._close_owned_transport()
            raise ConnectFailed(
                url=self.url,
                attempt=1,
                stream=self._name,
                component="StreamSupervisor",
                details={"error": str(e)},
            ) from e

        await self._install(channel)

    async def disconnect(self) -> None:
        """
        Disconnect for good. Safe to call more than once.

        Cancels a pending reconnect, closes the transport and waits for the
        listen loop to exit. No error is emitted for this close.
        """
        if self._state == ConnectionState.DISCONNECTED:
            return

        logger.info(f"[{self._name}] Disconnecting")
        self._state = ConnectionState.DISCONNECTED

        current = asyncio.current_task()
        tasks = [
            task
            for task in (self._reconnect_task, self._listen_task)
            if task is not None and not task.done() and task is not current
        ]
        for task in tasks:
            task.cancel()

        channel, self._channel = self._channel, None
        if channel is not None:
            await self._close_channel(channel)

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._listen_task = None
        self._reconnect_task = None

        await self._close_owned_transport()
        logger.info(f"[{self._name}] Disconnected")

    async def _close_owned_transport(self) -> None:
        """Release a transport this supervisor created; injected ones stay open."""
        if not self._owns_transport:
            return
        try:
            await self._transport.close()
        except Exception as e:
            logger.warning(f"[{self._name}] Error closing transport: {e}")

    async def __aenter__(self) -> StreamSupervisor[U]:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.disconnect()

    # --- Subscriptions ---

    async def subscribe(self, isin: InstrumentId) -> None:
        """Subscribe to an instrument. Double subscriptions are prevented silently."""
        if self._state == ConnectionState.DISCONNECTED:
            logger.debug(f"[{self._name}] subscribe({isin}) after disconnect ignored")
            return

        async with self._lock:
            if self._state == ConnectionState.DISCONNECTED:
                return
            if not self._registry.add(isin):
                return
            if self._state == ConnectionState.CONNECTED:
                await self._send(
                    ControlMessage(ControlAction.SUBSCRIBE, isin, self._kind.specifier)
                )

    async def unsubscribe(self, isin: InstrumentId) -> None:
        """Unsubscribe from an instrument. Double unsubscriptions are prevented silently."""
        if self._state == ConnectionState.DISCONNECTED:
            logger.debug(f"[{self._name}] unsubscribe({isin}) after disconnect ignored")
            return

        async with self._lock:
            if self._state == ConnectionState.DISCONNECTED:
                return
            if not self._registry.remove(isin):
                return
            if self._state == ConnectionState.CONNECTED:
                await self._send(ControlMessage(ControlAction.UNSUBSCRIBE, isin))

    def set_raw_message_tap(self, queue: Optional[asyncio.Queue[bytes]]) -> None:
        """
        Forward every raw data payload, untouched, into queue (None removes the tap).
        The caller is in charge of maintaining the queue.
        """
        if queue is None:
            self._raw_tap = None
        else:
            self._raw_tap = DispatchSink(queue, self._sink_config, name=f"{self._name}_raw")

    # --- Connection handling ---

    async def _dial(self) -> Channel:
        return await self._transport.dial(self.url, timeout=self._config.connect_timeout_s)

    async def _install(self, channel: Channel) -> bool:
        """Adopt a freshly dialed channel, replay subscriptions, start listening."""
        async with self._lock:
            if self._state == ConnectionState.DISCONNECTED:
                await self._close_channel(channel)
                return False

            self._channel = channel
            self._backoff.reset()
            self._metrics.connected_at = datetime.now(timezone.utc)
            self._set_state(ConnectionState.CONNECTED)

            replay = self._registry.snapshot()
            for isin in replay:
                sent = await self._send(
                    ControlMessage(ControlAction.SUBSCRIBE, isin, self._kind.specifier)
                )
                if not sent:
                    break

        if self._state == ConnectionState.DISCONNECTED:
            return False
        self._listen_task = asyncio.create_task(
            self._listen(channel), name=f"{self._name}_listen"
        )
        logger.info(
            f"[{self._name}] Connected to {self.url}, replayed {len(replay)} subscription(s)"
        )
        return True

    async def _send(self, message: ControlMessage) -> bool:
        """Write a control frame. Must be called with _lock held."""
        channel = self._channel
        if channel is None:
            return False

        try:
            await asyncio.wait_for(
                channel.send(encode_control(message)), timeout=self._config.send_timeout_s
            )
            return True
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if self._state == ConnectionState.DISCONNECTED:
                logger.debug(f"[{self._name}] Send after disconnect failed: {e!r}")
                return False

            detail = f"{message.action.value} {message.value} failed: {e!r}"
            self._record_error(detail)
            logger.warning(f"[{self._name}] Control send failed, dropping connection: {detail}")

            # The listen loop sees the closed channel and runs the reconnect path
            self._aborted_channel = channel
            self._abort_reason = detail
            await self._close_channel(channel)
            return False

    async def _close_channel(self, channel: Channel) -> None:
        try:
            await channel.close()
        except Exception as e:
            logger.debug(f"[{self._name}] Error closing channel: {e!r}")

    async def _listen(self, channel: Channel) -> None:
        """Read loop for one live connection."""
        try:
            while True:
                try:
                    payload = await channel.receive()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    await self._on_read_failure(channel, e)
                    return

                if self._state == ConnectionState.DISCONNECTED or channel is not self._channel:
                    # Disconnected while waiting for the message, exit this loop
                    return

                self._handle_payload(payload)

        except asyncio.CancelledError:
            logger.debug(f"[{self._name}] Listen loop cancelled")
            raise

    async def _on_read_failure(self, channel: Channel, exc: Exception) -> None:
        if self._state == ConnectionState.DISCONNECTED or channel is not self._channel:
            return

        async with self._lock:
            if self._state == ConnectionState.DISCONNECTED or channel is not self._channel:
                return
            self._channel = None
            error = self._classify_failure(channel, exc)
            self._set_state(ConnectionState.WAITING_TO_RECONNECT)

        await self._close_channel(channel)
        if self._state == ConnectionState.DISCONNECTED:
            return

        logger.warning(f"[{self._name}] Connection lost ({error}), initiating reconnect")
        self._emit(error)
        self._metrics.reconnections += 1
        self._reconnect_task = asyncio.create_task(
            self._reconnect_loop(), name=f"{self._name}_reconnect"
        )

    def _classify_failure(self, channel: Channel, exc: Exception) -> StreamError:
        if channel is self._aborted_channel:
            self._aborted_channel = None
            return TransportFailure(self._abort_reason, stream=self._name)

        if isinstance(exc, ChannelClosed):
            if exc.code is None or exc.code in GRACEFUL_CLOSE_CODES:
                return ConnectionClosed(close_code=exc.code, stream=self._name)
            return TransportFailure(
                f"closed with code {exc.code} {exc.reason}".rstrip(), stream=self._name
            )

        return TransportFailure(str(exc) or type(exc).__name__, stream=self._name)

    async def _reconnect_loop(self) -> None:
        """Wait out the backoff and dial again until connected or disconnected."""
        try:
            while self._state != ConnectionState.DISCONNECTED:
                delay = self._backoff.delay_s()
                logger.info(
                    f"[{self._name}] Reconnecting in {delay:.2f}s "
                    f"(failed attempts: {self._backoff.count})"
                )
                await asyncio.sleep(delay)
                if self._state == ConnectionState.DISCONNECTED:
                    return

                self._set_state(ConnectionState.CONNECTING)
                try:
                    channel = await self._dial()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    if self._state == ConnectionState.DISCONNECTED:
                        return
                    attempt = self._backoff.record_failure()
                    self._set_state(ConnectionState.WAITING_TO_RECONNECT)
                    self._record_error(str(e))
                    logger.warning(f"[{self._name}] Reconnect attempt {attempt} failed: {e}")
                    self._emit(
                        ConnectFailed(
                            url=self.url,
                            attempt=attempt,
                            stream=self._name,
                            details={"error": str(e)},
                        )
                    )
                    continue

                await self._install(channel)
                return

        except asyncio.CancelledError:
            logger.debug(f"[{self._name}] Reconnect cancelled")
            raise

    # --- Message handling ---

    def _handle_payload(self, payload: bytes) -> None:
        """Classify one payload and dispatch it to the error, raw and update sinks."""
        self._metrics.messages_received += 1
        self._metrics.bytes_received += len(payload)
        self._metrics.last_message_at = datetime.now(timezone.utc)

        message_class = classify(payload)
        if message_class == MessageClass.UNKNOWN_INSTRUMENT:
            self._emit(UnknownInstrument(stream=self._name, details={"payload": _preview(payload)}))
            return
        if message_class == MessageClass.INVALID_REQUEST:
            self._emit(InvalidRequest(stream=self._name, details={"payload": _preview(payload)}))
            return

        if self._raw_tap is not None:
            self._raw_tap.publish(payload)

        try:
            update = self._kind.decode(payload)
        except DecodeFailed as e:
            logger.warning(f"[{self._name}] Decode error: {e}")
            self._emit(e)
            return
        except Exception as e:
            logger.error(f"[{self._name}] Unexpected decode error: {e}", exc_info=True)
            self._emit(
                DecodeFailed(
                    str(e),
                    expected_type=self._kind.update_kind.value,
                    raw_data=payload,
                )
            )
            return

        if self._updates.publish(update):
            self._metrics.updates_published += 1

    def _emit(self, error: StreamError) -> None:
        if error.stream is None:
            error.stream = self._name
            error.details["stream"] = self._name
        self._metrics.errors += 1
        self._record_error(str(error))
        self._errors.publish(error)

    def _record_error(self, message: str) -> None:
        self._last_error = message
        self._last_error_at = datetime.now(timezone.utc)

    def _dropped(self) -> int:
        dropped = self._updates.dropped + self._errors.dropped
        if self._raw_tap is not None:
            dropped += self._raw_tap.dropped
        return dropped

    def get_health(self) -> ConnectionHealth:
        """Get current connection health snapshot."""
        return ConnectionHealth(
            state=self._state,
            url=self.url,
            subscriptions=self._registry.snapshot(),
            connected_since=self._metrics.connected_at,
            last_message_at=self._metrics.last_message_at,
            reconnect_count=self._metrics.reconnections,
            message_count=self._metrics.messages_received,
            error_count=self._metrics.errors,
            dropped_count=self._dropped(),
            last_error=self._last_error,
            last_error_at=self._last_error_at,
        )


def _preview(payload: bytes) -> str:
    return payload[:_PREVIEW_CHARS].decode("utf-8", errors="replace")
