"""
Subscription registry.

The set of instrument ids the caller currently wants streamed. It is
independent of the transport: a dropped connection never clears it, and the
supervisor replays it after every successful (re)connect.
"""

from __future__ import annotations

import logging
from typing import Iterable, Iterator

from marketstream.live.types import InstrumentId

logger = logging.getLogger(__name__)


class SubscriptionRegistry:
    """
    Insertion-ordered set of instrument ids.

    add/remove are idempotent and report whether the set changed, so the
    caller knows whether a control frame has to go out. Snapshot order is
    insertion order, which is also the replay order.
    """

    def __init__(self, initial: Iterable[InstrumentId] = ()) -> None:
        self._members: dict[InstrumentId, None] = dict.fromkeys(initial)

    def add(self, instrument_id: InstrumentId) -> bool:
        """Insert the id. Returns False if it was already present."""
        if instrument_id in self._members:
            return False
        self._members[instrument_id] = None
        logger.debug(f"Registered subscription: {instrument_id}")
        return True

    def remove(self, instrument_id: InstrumentId) -> bool:
        """Delete the id. Returns False if it was not present."""
        if instrument_id not in self._members:
            return False
        del self._members[instrument_id]
        logger.debug(f"Removed subscription: {instrument_id}")
        return True

    def snapshot(self) -> tuple[InstrumentId, ...]:
        """Current members in insertion order."""
        return tuple(self._members)

    def __contains__(self, instrument_id: object) -> bool:
        return instrument_id in self._members

    def __len__(self) -> int:
        return len(self._members)

    def __iter__(self) -> Iterator[InstrumentId]:
        return iter(self.snapshot())
