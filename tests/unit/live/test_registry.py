"""
Unit tests for the subscription registry.
"""

from marketstream.live.registry import SubscriptionRegistry


class TestSubscriptionRegistry:
    """Tests for SubscriptionRegistry."""

    def test_add_reports_change(self) -> None:
        registry = SubscriptionRegistry()
        assert registry.add("DE000TUAG000") is True
        assert registry.add("DE000TUAG000") is False
        assert len(registry) == 1

    def test_remove_reports_change(self) -> None:
        registry = SubscriptionRegistry(["DE000TUAG000"])
        assert registry.remove("DE000TUAG000") is True
        assert registry.remove("DE000TUAG000") is False
        assert len(registry) == 0

    def test_remove_absent(self) -> None:
        registry = SubscriptionRegistry()
        assert registry.remove("US88160R1014") is False

    def test_snapshot_in_insertion_order(self) -> None:
        registry = SubscriptionRegistry()
        for isin in ("C", "A", "B"):
            registry.add(isin)
        registry.add("A")
        assert registry.snapshot() == ("C", "A", "B")
        assert list(registry) == ["C", "A", "B"]

    def test_readd_moves_to_end(self) -> None:
        """An id removed and added again is replayed last."""
        registry = SubscriptionRegistry(["A", "B"])
        registry.remove("A")
        registry.add("A")
        assert registry.snapshot() == ("B", "A")

    def test_membership_is_exact(self) -> None:
        registry = SubscriptionRegistry(["DE000TUAG000"])
        assert "DE000TUAG000" in registry
        assert "de000tuag000" not in registry
        assert " DE000TUAG000" not in registry

    def test_snapshot_is_a_copy(self) -> None:
        registry = SubscriptionRegistry(["A"])
        snapshot = registry.snapshot()
        registry.add("B")
        assert snapshot == ("A",)

    def test_iteration_while_mutating(self) -> None:
        registry = SubscriptionRegistry(["A", "B"])
        for isin in registry:
            registry.remove(isin)
        assert len(registry) == 0
