"""
Reconnect backoff.

Linear backoff: the delay grows by one unit (a minute by default) per
consecutive failed attempt and stops growing at the cap. Retrying never stops;
reaching the cap only fixes the wait.
"""

from __future__ import annotations

from marketstream.live.config import ConnectionConfig


class BackoffCounter:
    """Counts consecutive failed reconnect attempts since the last success."""

    def __init__(self, config: ConnectionConfig) -> None:
        self._unit_s = config.backoff_unit_s
        self._min_delay_s = config.min_reconnect_delay_s
        self._max_steps = config.max_backoff_steps
        self._count = 0

    @property
    def count(self) -> int:
        return self._count

    @property
    def max_delay_s(self) -> float:
        return max(self._min_delay_s, self._max_steps * self._unit_s)

    def record_failure(self) -> int:
        """Register a failed attempt. The counter saturates at the cap."""
        self._count = min(self._count + 1, self._max_steps)
        return self._count

    def reset(self) -> None:
        self._count = 0

    def delay_s(self) -> float:
        """Wait before the next attempt. Never below the minimum delay."""
        return max(self._min_delay_s, self._count * self._unit_s)
