"""
Custom exceptions for the live stream module.

Exception hierarchy:
- LiveFeedError (base)
  - ConfigurationError: Invalid configuration
  - ChannelClosed: Raised by a transport channel when the peer closed it
  - StreamError: Errors delivered through a stream's error sink
    - ConnectFailed: Dialing the remote endpoint failed (fatal)
    - ConnectionClosed: Live connection closed gracefully by the peer (fatal)
    - TransportFailure: Any other transport-level failure (fatal)
    - UnknownInstrument: Provider rejected an instrument id (message-local)
    - InvalidRequest: Provider rejected a control frame (message-local)
    - DecodeFailed: A data payload could not be decoded (message-local)
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar, Optional


class ErrorKind(str, Enum):
    """Tag carried by every StreamError."""

    CONNECT_FAILED = "connect_failed"
    CONNECTION_CLOSED = "connection_closed"
    UNKNOWN_INSTRUMENT = "unknown_instrument"
    INVALID_REQUEST = "invalid_request"
    DECODE_FAILED = "decode_failed"
    TRANSPORT = "transport"

    @property
    def is_fatal(self) -> bool:
        """True if this kind ends the current connection and triggers a reconnect."""
        return self in _FATAL_KINDS


_FATAL_KINDS = frozenset(
    {ErrorKind.CONNECT_FAILED, ErrorKind.CONNECTION_CLOSED, ErrorKind.TRANSPORT}
)


class LiveFeedError(Exception):
    """Base exception for all live stream errors."""

    def __init__(
        self,
        message: str,
        *,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.component = component
        self.details = dict(details or {})
        super().__init__(message)

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.component:
            parts.append(f"[component={self.component}]")
        if self.details:
            parts.append(f"[details={self.details}]")
        return " ".join(parts)


class ConfigurationError(LiveFeedError):
    """Raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.field = field
        self.value = value
        details = dict(details or {})
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, component=component, details=details)


class ChannelClosed(LiveFeedError):
    """Raised by Channel.receive/send once the connection is closed."""

    def __init__(
        self,
        code: Optional[int] = None,
        reason: str = "",
        *,
        component: Optional[str] = None,
    ) -> None:
        self.code = code
        self.reason = reason
        details: dict[str, Any] = {"code": code}
        if reason:
            details["reason"] = reason
        super().__init__("Channel closed", component=component, details=details)


class StreamError(LiveFeedError):
    """
    Base for everything a stream publishes to its error sink.

    Consumers can branch on ``kind`` (or ``fatal``) alone: fatal errors mean a
    gap while the stream reconnects, message-local errors mean the stream keeps
    running.
    """

    kind: ClassVar[ErrorKind]
    default_message: ClassVar[str] = "Stream error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        stream: Optional[str] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.stream = stream
        details = dict(details or {})
        if stream:
            details["stream"] = stream
        super().__init__(message or self.default_message, component=component, details=details)

    @property
    def fatal(self) -> bool:
        """True if the error ended the connection."""
        return self.kind.is_fatal


class ConnectFailed(StreamError):
    """Raised when the WebSocket connection could not be established."""

    kind = ErrorKind.CONNECT_FAILED
    default_message = "Can't connect to market data stream"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        url: Optional[str] = None,
        attempt: int = 0,
        stream: Optional[str] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.url = url
        self.attempt = attempt
        details = dict(details or {})
        if url:
            details["url"] = url
        details["attempt"] = attempt
        super().__init__(message, stream=stream, component=component, details=details)


class ConnectionClosed(StreamError):
    """Active connection was closed by the remote end. Processing stops until reconnect."""

    kind = ErrorKind.CONNECTION_CLOSED
    default_message = "Market data connection closed"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        close_code: Optional[int] = None,
        stream: Optional[str] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.close_code = close_code
        details = dict(details or {})
        if close_code is not None:
            details["close_code"] = close_code
        super().__init__(message, stream=stream, component=component, details=details)


class TransportFailure(StreamError):
    """Any transport failure that is not a graceful close."""

    kind = ErrorKind.TRANSPORT
    default_message = "Transport failure"

    def __init__(
        self,
        detail: str,
        *,
        stream: Optional[str] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.detail = detail
        super().__init__(
            f"Transport failure: {detail}", stream=stream, component=component, details=details
        )


class UnknownInstrument(StreamError):
    """Subscription for an invalid or unknown ISIN. Message processing continues."""

    kind = ErrorKind.UNKNOWN_INSTRUMENT
    default_message = "Invalid ISIN"


class InvalidRequest(StreamError):
    """The provider reported an invalid request. Message processing continues."""

    kind = ErrorKind.INVALID_REQUEST
    default_message = "Invalid request detected"


class DecodeFailed(StreamError):
    """Raised when a data payload cannot be decoded into the expected update."""

    kind = ErrorKind.DECODE_FAILED
    default_message = "Failed to decode message"

    def __init__(
        self,
        detail: str,
        *,
        expected_type: Optional[str] = None,
        raw_data: Optional[bytes] = None,
        stream: Optional[str] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.detail = detail
        self.expected_type = expected_type
        self.raw_data = raw_data
        details = dict(details or {})
        if expected_type:
            details["expected_type"] = expected_type
        # Don't include raw_data in details to avoid log spam
        super().__init__(detail, stream=stream, component=component, details=details)
