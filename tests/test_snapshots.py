"""
Tests for the snapshot store
"""
import pytest
from decimal import Decimal
from datetime import timedelta

from ledger.models import Snapshot
from ledger.portfolio import AssetLedger, SnapshotStore


def _assets(clock, **values):
    ledger = AssetLedger(clock)
    for symbol, value in values.items():
        ledger.add_asset(symbol, 1, value, value)
    return ledger.get_assets()


class TestTakeSnapshot:
    """Test snapshot creation and ordering"""

    def test_total_is_assets_plus_cash(self, clock):
        store = SnapshotStore(clock)

        snapshot = store.take_snapshot(_assets(clock, A=100, B=50), Decimal("25"))

        assert snapshot.total_value == Decimal("175")
        assert snapshot.cash == Decimal("25")
        assert [(h.symbol, h.value) for h in snapshot.assets] == [("A", Decimal("100")), ("B", Decimal("50"))]

    def test_rejects_non_advancing_timestamp(self, clock):
        store = SnapshotStore(clock)

        assert store.take_snapshot([], 100) is not None
        assert store.take_snapshot([], 200) is None
        assert len(store) == 1

        clock.advance(seconds=1)
        assert store.take_snapshot([], 200) is not None

    def test_retention_prunes_old_entries(self, clock):
        store = SnapshotStore(clock, retention_days=10)

        for _ in range(15):
            store.take_snapshot([], 100)
            clock.advance(days=1)

        timestamps = [s.timestamp for s in store.get_snapshots()]
        latest = timestamps[-1]
        assert all(latest - ts < timedelta(days=10) for ts in timestamps)
        assert len(timestamps) == 10


class TestValueHistory:
    """Test history lookups"""

    def test_history_window_inclusive(self, clock):
        store = SnapshotStore(clock)

        for value in (100, 110, 120, 130):
            store.take_snapshot([], value)
            clock.advance(days=1)

        clock.advance(days=-1)
        history = store.get_value_history(days=2)

        assert [p.value for p in history] == [Decimal("110"), Decimal("120"), Decimal("130")]

    def test_find_at_or_before(self, clock):
        store = SnapshotStore(clock)
        start = clock.now()

        store.take_snapshot([], 100)
        clock.advance(days=2)
        store.take_snapshot([], 200)

        assert store.find_at_or_before(start + timedelta(days=1)).total_value == Decimal("100")
        assert store.find_at_or_before(start - timedelta(seconds=1)) is None

    def test_restore_sorts_and_drops_duplicates(self, clock):
        store = SnapshotStore(clock)
        t0 = clock.now()
        snapshots = [
            Snapshot(timestamp=t0 + timedelta(days=1), total_value=Decimal("2"), cash=Decimal("2")),
            Snapshot(timestamp=t0, total_value=Decimal("1"), cash=Decimal("1")),
            Snapshot(timestamp=t0, total_value=Decimal("9"), cash=Decimal("9")),
        ]

        store.restore(snapshots)

        assert store.values() == [Decimal("1"), Decimal("2")]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
