"""
Configuration types for the live stream module.

Provides immutable, validated configuration dataclasses for all live stream components.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, Generic, Literal, Optional, TypeVar

from marketstream.live.codec import decode_quote, decode_tick
from marketstream.live.errors import ConfigurationError
from marketstream.live.types import Quote, Tick, UpdateKind

U = TypeVar("U", Tick, Quote)

# lemon.markets WebSocket endpoints
LEMON_TICKS_URL = "wss://api.lemon.markets/streams/v1/marketdata"
LEMON_QUOTES_URL = "wss://api.lemon.markets/streams/v1/quotes"

# Feed-variant selectors understood by the provider
TICK_SPECIFIER = "with-quantity-with-uncovered"
QUOTE_SPECIFIER = "with-quantity-with-price"

# Close codes that count as an orderly close (normal, going away, abnormal)
GRACEFUL_CLOSE_CODES: frozenset[int] = frozenset({1000, 1001, 1006})


@dataclass(frozen=True)
class ConnectionConfig:
    """Configuration for a single stream connection."""

    # Connection behavior
    connect_timeout_s: float = 30.0
    send_timeout_s: float = 5.0  # Control frames; a timeout counts as transport failure
    heartbeat_s: Optional[float] = 20.0  # Client-side ping; provider drops idle readers

    # Reconnect backoff: delay = max(min_delay, steps * unit), steps capped
    backoff_unit_s: float = 60.0
    min_reconnect_delay_s: float = 5.0
    max_backoff_steps: int = 5

    def __post_init__(self) -> None:
        if self.connect_timeout_s <= 0:
            raise ConfigurationError(
                "connect_timeout_s must be positive",
                field="connect_timeout_s",
                value=self.connect_timeout_s,
            )
        if self.send_timeout_s <= 0:
            raise ConfigurationError(
                "send_timeout_s must be positive",
                field="send_timeout_s",
                value=self.send_timeout_s,
            )
        if self.heartbeat_s is not None and self.heartbeat_s <= 0:
            raise ConfigurationError(
                "heartbeat_s must be positive or None",
                field="heartbeat_s",
                value=self.heartbeat_s,
            )
        if self.backoff_unit_s <= 0:
            raise ConfigurationError(
                "backoff_unit_s must be positive",
                field="backoff_unit_s",
                value=self.backoff_unit_s,
            )
        if self.min_reconnect_delay_s <= 0:
            raise ConfigurationError(
                "min_reconnect_delay_s must be positive",
                field="min_reconnect_delay_s",
                value=self.min_reconnect_delay_s,
            )
        if self.max_backoff_steps < 1:
            raise ConfigurationError(
                "max_backoff_steps must be at least 1",
                field="max_backoff_steps",
                value=self.max_backoff_steps,
            )


@dataclass(frozen=True)
class SinkConfig:
    """Delivery policy for the caller-owned queues."""

    # On a full bounded queue: drop the incoming item or evict the oldest one
    drop_policy: Literal["newest", "oldest"] = "newest"

    def __post_init__(self) -> None:
        if self.drop_policy not in ("newest", "oldest"):
            raise ConfigurationError(
                "drop_policy must be 'newest' or 'oldest'",
                field="drop_policy",
                value=self.drop_policy,
            )


@dataclass(frozen=True)
class StreamKind(Generic[U]):
    """
    Per-kind wiring of a stream, selected once at construction.

    Example:
        kind = TICK_STREAM.with_url("wss://sandbox.example/streams/v1/marketdata")
    """

    name: str
    update_kind: UpdateKind
    url: str
    specifier: str
    decode: Callable[[bytes], U]

    def __post_init__(self) -> None:
        if not self.url:
            raise ConfigurationError("url must not be empty", field="url")

    def with_url(self, url: str) -> StreamKind[U]:
        """Same kind against another endpoint."""
        return replace(self, url=url)


TICK_STREAM: StreamKind[Tick] = StreamKind(
    name="ticks",
    update_kind=UpdateKind.TICK,
    url=LEMON_TICKS_URL,
    specifier=TICK_SPECIFIER,
    decode=decode_tick,
)

QUOTE_STREAM: StreamKind[Quote] = StreamKind(
    name="quotes",
    update_kind=UpdateKind.QUOTE,
    url=LEMON_QUOTES_URL,
    specifier=QUOTE_SPECIFIER,
    decode=decode_quote,
)

STREAM_KINDS: dict[UpdateKind, StreamKind] = {
    UpdateKind.TICK: TICK_STREAM,
    UpdateKind.QUOTE: QUOTE_STREAM,
}
