"""
Dispatch sinks.

The caller owns the asyncio queues (updates, errors, optional raw tap); the
stream only ever writes to them. Writes never block: on a full bounded queue
the configured drop policy decides which item is lost, and the loss is
counted. A slow consumer therefore costs data, never a stuck listen loop or a
stuck shutdown. Queues are never closed or drained by the stream.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Generic, TypeVar

from marketstream.live.config import SinkConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DispatchSink(Generic[T]):
    """Non-blocking writer in front of a caller-owned asyncio.Queue."""

    def __init__(
        self,
        queue: asyncio.Queue[T],
        config: SinkConfig | None = None,
        name: str = "sink",
    ) -> None:
        self._queue = queue
        self._config = config or SinkConfig()
        self._name = name
        self._published = 0
        self._dropped = 0

    @property
    def queue(self) -> asyncio.Queue[T]:
        return self._queue

    @property
    def published(self) -> int:
        return self._published

    @property
    def dropped(self) -> int:
        return self._dropped

    def publish(self, item: T) -> bool:
        """
        Hand an item to the consumer.

        Returns:
            True if the item was enqueued, False if it was dropped
        """
        try:
            self._queue.put_nowait(item)
            self._published += 1
            return True
        except asyncio.QueueFull:
            pass

        self._dropped += 1
        if self._config.drop_policy == "oldest":
            try:
                self._queue.get_nowait()
                self._queue.task_done()
            except asyncio.QueueEmpty:
                pass
            try:
                self._queue.put_nowait(item)
                self._published += 1
                accepted = True
            except asyncio.QueueFull:
                accepted = False
        else:
            accepted = False

        # Log first drop and then every 1000th to avoid flooding
        if self._dropped == 1 or self._dropped % 1000 == 0:
            logger.warning(
                f"[{self._name}] Consumer too slow, dropped {self._dropped} item(s) "
                f"(policy={self._config.drop_policy})"
            )
        return accepted
