"""
Wire codec for the market data streams.

Classifies raw payloads (provider error text vs data) and decodes data
payloads into Tick / Quote updates. Everything here is pure: no state, no I/O.

Provider errors do not arrive in a structured envelope, they are recognised by
their phrasing. The marker constants below are the only thing to touch if the
provider changes that phrasing.

Tick payload:
{
    "isin": "DE000TUAG000",
    "price": 12.34,
    "quantity": 0        // 0 => price update without a trade
}

Quote payload:
{
    "isin": "US88160R1014",
    "bid_price": 100.0,
    "ask_price": 100.5,
    "bid_quan": 50,
    "ask_quan": 30
}
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

import orjson

from marketstream.live.errors import DecodeFailed
from marketstream.live.types import ControlMessage, MessageClass, Quote, Tick

UNKNOWN_INSTRUMENT_MARKER = b"This instrument does not exist"
INVALID_REQUEST_MARKER = b"Invalid request"


def classify(payload: bytes) -> MessageClass:
    """Detect provider error messages by their text; everything else is data."""
    if UNKNOWN_INSTRUMENT_MARKER in payload:
        return MessageClass.UNKNOWN_INSTRUMENT
    if INVALID_REQUEST_MARKER in payload:
        return MessageClass.INVALID_REQUEST
    return MessageClass.DATA


def encode_control(message: ControlMessage) -> bytes:
    """Serialise a control frame for the wire."""
    return orjson.dumps(message.to_wire())


def decode_tick(payload: bytes) -> Tick:
    """
    Decode a tick payload.

    Raises:
        DecodeFailed: If the payload is not a valid tick
    """
    data = _load_object(payload, "tick")
    return Tick(
        isin=_required_isin(data, "tick"),
        price=_safe_decimal(_required(data, "price", "tick"), "price"),
        quantity=_safe_unsigned(data.get("quantity", 0), "quantity"),
    )


def decode_quote(payload: bytes) -> Quote:
    """
    Decode a quote payload.

    Raises:
        DecodeFailed: If the payload is not a valid quote
    """
    data = _load_object(payload, "quote")
    return Quote(
        isin=_required_isin(data, "quote"),
        bid=_safe_decimal(_required(data, "bid_price", "quote"), "bid_price"),
        ask=_safe_decimal(_required(data, "ask_price", "quote"), "ask_price"),
        bid_size=_safe_unsigned(data.get("bid_quan", 0), "bid_quan"),
        ask_size=_safe_unsigned(data.get("ask_quan", 0), "ask_quan"),
    )


def _load_object(payload: bytes, expected_type: str) -> dict[str, Any]:
    try:
        data = orjson.loads(payload)
    except orjson.JSONDecodeError as e:
        raise DecodeFailed(
            f"Invalid JSON: {e}", expected_type=expected_type, raw_data=payload
        ) from e

    if not isinstance(data, dict):
        raise DecodeFailed(
            f"Expected a JSON object, got {type(data).__name__}",
            expected_type=expected_type,
            raw_data=payload,
        )
    return data


def _required(data: dict[str, Any], key: str, expected_type: str) -> Any:
    value = data.get(key)
    if value is None:
        raise DecodeFailed(
            f"Missing required {expected_type} field: {key}", expected_type=expected_type
        )
    return value


def _required_isin(data: dict[str, Any], expected_type: str) -> str:
    isin = _required(data, "isin", expected_type)
    if not isinstance(isin, str) or not isin:
        raise DecodeFailed(f"Invalid isin value: {isin!r}", expected_type=expected_type)
    return isin


def _safe_decimal(value: Any, field_name: str) -> Decimal:
    """Convert a JSON number (or numeric string) to Decimal via its text form."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise DecodeFailed(
            f"Invalid decimal value for {field_name}: {value!r}", expected_type="decimal"
        )
    try:
        result = Decimal(str(value))
    except InvalidOperation as e:
        raise DecodeFailed(
            f"Invalid decimal value for {field_name}: {value!r}", expected_type="decimal"
        ) from e
    if not result.is_finite():
        raise DecodeFailed(f"Non-finite value for {field_name}: {value!r}", expected_type="decimal")
    return result


def _safe_unsigned(value: Any, field_name: str) -> int:
    """Convert a value to a non-negative int."""
    if isinstance(value, bool):
        raise DecodeFailed(
            f"Invalid integer value for {field_name}: {value!r}", expected_type="uint"
        )
    if isinstance(value, float):
        if not value.is_integer():
            raise DecodeFailed(
                f"Invalid integer value for {field_name}: {value!r}", expected_type="uint"
            )
        value = int(value)
    try:
        result = int(value)
    except (ValueError, TypeError) as e:
        raise DecodeFailed(
            f"Invalid integer value for {field_name}: {value!r}", expected_type="uint"
        ) from e
    if result < 0:
        raise DecodeFailed(f"Negative value for {field_name}: {value!r}", expected_type="uint")
    return result
