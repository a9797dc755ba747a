"""
Unit tests for reconnect backoff.
"""

from marketstream.live.backoff import BackoffCounter
from marketstream.live.config import ConnectionConfig


class TestBackoffCounter:
    """Tests for BackoffCounter."""

    def test_defaults_are_linear_minutes(self) -> None:
        """Default policy: 5s floor, one more minute per failure, capped at five."""
        backoff = BackoffCounter(ConnectionConfig())
        delays = [backoff.delay_s()]
        for _ in range(7):
            backoff.record_failure()
            delays.append(backoff.delay_s())

        assert delays == [5.0, 60.0, 120.0, 180.0, 240.0, 300.0, 300.0, 300.0]
        assert backoff.max_delay_s == 300.0

    def test_delay_is_monotonic_up_to_cap(self) -> None:
        backoff = BackoffCounter(ConnectionConfig(backoff_unit_s=2.0, max_backoff_steps=4))
        previous = backoff.delay_s()
        for _ in range(10):
            backoff.record_failure()
            current = backoff.delay_s()
            assert current >= previous
            assert current <= backoff.max_delay_s
            previous = current

    def test_counter_saturates(self) -> None:
        backoff = BackoffCounter(ConnectionConfig(max_backoff_steps=3))
        attempts = [backoff.record_failure() for _ in range(5)]
        assert attempts == [1, 2, 3, 3, 3]
        assert backoff.count == 3

    def test_reset(self) -> None:
        backoff = BackoffCounter(ConnectionConfig())
        backoff.record_failure()
        backoff.record_failure()

        backoff.reset()

        assert backoff.count == 0
        assert backoff.delay_s() == 5.0

    def test_minimum_delay_applies_at_zero(self) -> None:
        """A counter of zero never means an immediate retry."""
        backoff = BackoffCounter(ConnectionConfig(min_reconnect_delay_s=0.5, backoff_unit_s=0.1))
        assert backoff.delay_s() == 0.5
        backoff.record_failure()
        assert backoff.delay_s() == 0.5
