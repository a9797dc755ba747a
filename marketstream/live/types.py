"""
Shared types, enums, and data structures for the live stream module.

This module contains types that are used across multiple components
of the live stream system.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

InstrumentId = str


class ConnectionState(str, Enum):
    """State machine for a stream supervisor."""

    INITIALIZING = "initializing"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    WAITING_TO_RECONNECT = "waiting_to_reconnect"
    DISCONNECTED = "disconnected"  # terminal


class UpdateKind(str, Enum):
    """Update kinds a stream can be specialised to."""

    TICK = "tick"
    QUOTE = "quote"


class MessageClass(str, Enum):
    """Classification of a raw payload read from the transport."""

    DATA = "data"
    UNKNOWN_INSTRUMENT = "unknown_instrument"
    INVALID_REQUEST = "invalid_request"


class ControlAction(str, Enum):
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"


@dataclass(frozen=True, slots=True)
class Tick:
    """Price update, with the traded quantity if there was a trade."""

    isin: InstrumentId
    price: Decimal
    quantity: int  # 0 => price-only update, no actual trade

    @property
    def was_trade(self) -> bool:
        return self.quantity > 0


@dataclass(frozen=True, slots=True)
class Quote:
    """Bid/ask prices and sizes for an instrument."""

    isin: InstrumentId
    bid: Decimal
    ask: Decimal
    bid_size: int
    ask_size: int

    @property
    def spread(self) -> Decimal:
        return self.ask - self.bid

    @property
    def mid(self) -> Decimal:
        return (self.bid + self.ask) / 2


DataUpdate = Union[Tick, Quote]


@dataclass(frozen=True, slots=True)
class ControlMessage:
    """Subscribe/unsubscribe frame sent to the remote service."""

    action: ControlAction
    value: InstrumentId
    specifier: str = ""

    def to_wire(self) -> dict[str, str]:
        return {
            "action": self.action.value,
            "specifier": self.specifier,
            "value": self.value,
        }


@dataclass
class ConnectionMetrics:
    """Counters for one stream supervisor (accumulated across reconnects)."""

    messages_received: int = 0
    bytes_received: int = 0
    updates_published: int = 0
    errors: int = 0
    reconnections: int = 0
    dropped: int = 0

    # Timing
    connected_at: Optional[datetime] = None
    last_message_at: Optional[datetime] = None


@dataclass
class ConnectionHealth:
    """Health snapshot for a single stream connection."""

    state: ConnectionState
    url: str
    subscriptions: tuple[InstrumentId, ...] = field(default_factory=tuple)
    connected_since: Optional[datetime] = None
    last_message_at: Optional[datetime] = None
    reconnect_count: int = 0
    message_count: int = 0
    error_count: int = 0
    dropped_count: int = 0
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None

    @property
    def uptime_s(self) -> Optional[float]:
        """Connection uptime in seconds, or None if not connected."""
        if self.connected_since is None or self.state != ConnectionState.CONNECTED:
            return None
        now = datetime.now(timezone.utc)
        return (now - self.connected_since).total_seconds()

    @property
    def is_healthy(self) -> bool:
        """Check if connection is in a healthy state."""
        return self.state == ConnectionState.CONNECTED

    @property
    def seconds_since_message(self) -> Optional[float]:
        """Seconds since last message, or None if no messages yet."""
        if self.last_message_at is None:
            return None
        now = datetime.now(timezone.utc)
        return (now - self.last_message_at).total_seconds()
