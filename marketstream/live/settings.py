"""
File-based settings for market data streams.

Purpose:
    - Load a TOML settings file
    - Validate it (unknown keys are rejected)
    - Convert it into the frozen runtime configs

Example file:
    [endpoints]
    quotes_url = "wss://sandbox.example/streams/v1/quotes"

    [connection]
    connect_timeout_s = 10
    backoff_unit_s = 30

    [sink]
    drop_policy = "oldest"
    queue_size = 5000
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from marketstream.live.config import (
    LEMON_QUOTES_URL,
    LEMON_TICKS_URL,
    STREAM_KINDS,
    ConnectionConfig,
    SinkConfig,
    StreamKind,
)
from marketstream.live.errors import ConfigurationError
from marketstream.live.types import UpdateKind


class EndpointSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")
    ticks_url: str = Field(default=LEMON_TICKS_URL, min_length=1, description="tick stream")
    quotes_url: str = Field(default=LEMON_QUOTES_URL, min_length=1, description="quote stream")


class ConnectionSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")
    connect_timeout_s: float = Field(default=30.0, gt=0)
    send_timeout_s: float = Field(default=5.0, gt=0)
    heartbeat_s: Optional[float] = Field(default=20.0, gt=0, description="None disables pings")
    backoff_unit_s: float = Field(default=60.0, gt=0)
    min_reconnect_delay_s: float = Field(default=5.0, gt=0)
    max_backoff_steps: int = Field(default=5, ge=1)


class SinkSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")
    drop_policy: Literal["newest", "oldest"] = "newest"
    queue_size: int = Field(default=10_000, ge=0, description="0 => unbounded queues")


class StreamSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")
    endpoints: EndpointSettings = Field(default_factory=EndpointSettings)
    connection: ConnectionSettings = Field(default_factory=ConnectionSettings)
    sink: SinkSettings = Field(default_factory=SinkSettings)

    def connection_config(self) -> ConnectionConfig:
        return ConnectionConfig(**self.connection.model_dump())

    def sink_config(self) -> SinkConfig:
        return SinkConfig(drop_policy=self.sink.drop_policy)

    def stream_kind(self, update_kind: UpdateKind) -> StreamKind:
        """Stream wiring for update_kind with the configured endpoint."""
        if update_kind == UpdateKind.TICK:
            url = self.endpoints.ticks_url
        else:
            url = self.endpoints.quotes_url
        return STREAM_KINDS[update_kind].with_url(url)


def load_settings(path: str | Path) -> StreamSettings:
    """
    Read and validate a TOML settings file.

    Raises:
        ConfigurationError: If the file is missing, not TOML, or invalid
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Settings file not found: {path}", field="path", value=path)

    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(
            f"Settings file is not valid TOML: {e}", field="path", value=path
        ) from e

    return parse_settings(data)


def parse_settings(data: dict[str, Any]) -> StreamSettings:
    """Validate an already loaded settings mapping."""
    try:
        return StreamSettings.model_validate(data)
    except ValidationError as e:
        errors = [
            {
                "path": ".".join(map(str, err["loc"])),
                "message": err["msg"],
                "error_type": err["type"],
            }
            for err in e.errors()
        ]
        first = errors[0]
        raise ConfigurationError(
            f"Invalid settings: {first['path']}: {first['message']}",
            field=first["path"],
            component="settings",
            details={"errors": errors},
        ) from e
