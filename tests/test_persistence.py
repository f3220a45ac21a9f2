"""
Tests for storage backends, document migration and flush retry
"""
import json
import pytest
from datetime import datetime, timezone
from decimal import Decimal

from ledger.exceptions import PersistenceError, SchemaError
from ledger.persistence import (
    CONFIG_KEY,
    PORTFOLIO_KEY,
    SNAPSHOTS_KEY,
    TRADES_KEY,
    FileKeyValueStore,
    MemoryKeyValueStore,
    PortfolioPersistence,
    SQLiteKeyValueStore,
    create_store,
    decode_document,
    migrate,
)
from ledger.portfolio import PortfolioManager
from shared.config.settings import LedgerSettings


LEGACY_ASSET = {
    "symbol": "BTCUSD",
    "quantity": "0.5",
    "avgCost": "40000",
    "currentPrice": "42000",
    "lastUpdated": "2024-01-01T00:00:00+00:00",
}


class FlakyStore(MemoryKeyValueStore):
    """Memory store whose writes fail while failing is set"""

    def __init__(self):
        super().__init__()
        self.failing = False

    def set(self, key, value):
        if self.failing:
            raise PersistenceError(key, "disk full")
        super().set(key, value)


class TestMigration:
    """Test schema versions"""

    def test_legacy_trades_list(self):
        assert migrate(TRADES_KEY, []) == {"version": 1, "trades": []}

    def test_legacy_config_object(self):
        assert migrate(CONFIG_KEY, {"baseCurrency": "EUR"}) == {"version": 1, "config": {"baseCurrency": "EUR"}}

    def test_legacy_portfolio_decodes(self):
        raw = json.dumps({"assets": [LEGACY_ASSET], "positions": [], "cashBalance": "250"})

        document = decode_document(PORTFOLIO_KEY, raw)

        assert document.version == 1
        assert document.assets[0].avg_cost == Decimal("40000")
        assert document.cash_balance == Decimal("250")

    def test_current_version_passes_through(self):
        raw = {"version": 1, "snapshots": []}
        assert migrate(SNAPSHOTS_KEY, raw) == raw

    def test_future_version_rejected(self):
        with pytest.raises(SchemaError):
            migrate(TRADES_KEY, {"version": 99, "trades": []})

    def test_wrong_legacy_shape_rejected(self):
        with pytest.raises(SchemaError):
            migrate(TRADES_KEY, {"not": "a list"})

    def test_unparseable_json(self):
        with pytest.raises(SchemaError) as exc_info:
            decode_document(TRADES_KEY, "{not json")
        assert exc_info.value.key == TRADES_KEY


class TestLoadDegradesToEmpty:
    """Test that unusable documents never block startup"""

    def test_corrupt_documents(self, ids, clock):
        store = MemoryKeyValueStore({
            PORTFOLIO_KEY: "garbage",
            TRADES_KEY: json.dumps({"version": 7, "trades": []}),
            SNAPSHOTS_KEY: json.dumps({"version": 1, "snapshots": [{"timestamp": "nope"}]}),
        })

        manager = PortfolioManager(store=store, id_generator=ids, clock=clock)

        assert manager.get_assets() == []
        assert manager.get_trade_history() == []
        assert manager.get_snapshots() == []
        assert manager.get_cash_balance() == Decimal("0")

    def test_naive_and_offset_timestamps_load_as_utc(self, ids, clock):
        store = MemoryKeyValueStore({
            SNAPSHOTS_KEY: json.dumps({"version": 1, "snapshots": [
                {"timestamp": "2023-12-30T00:00:00", "totalValue": "100", "cash": "100"},
                {"timestamp": "2023-12-31T02:00:00+02:00", "totalValue": "110", "cash": "110"},
            ]}),
        })

        manager = PortfolioManager(store=store, id_generator=ids, clock=clock)

        assert [s.timestamp for s in manager.get_snapshots()] == [
            datetime(2023, 12, 30, tzinfo=timezone.utc),
            datetime(2023, 12, 31, tzinfo=timezone.utc),
        ]
        assert all(s.timestamp.tzinfo is timezone.utc for s in manager.get_snapshots())
        assert manager.take_snapshot() is not None

    def test_missing_documents(self):
        assert PortfolioPersistence(MemoryKeyValueStore()).load(PORTFOLIO_KEY) is None


class TestFlushRetry:
    """Test fire-and-forget persistence"""

    def test_failed_flush_keeps_operation_and_retries(self, ids, clock):
        store = FlakyStore()
        manager = PortfolioManager(store=store, id_generator=ids, clock=clock)

        store.failing = True
        assert manager.deposit(500) is True
        assert manager.get_cash_balance() == Decimal("500")
        assert manager.persistence.pending_keys == [PORTFOLIO_KEY, TRADES_KEY]
        assert store.get(PORTFOLIO_KEY) is None

        store.failing = False
        manager.update_config(base_currency="EUR")

        assert manager.persistence.pending_keys == []
        reloaded = PortfolioManager(store=store, id_generator=ids, clock=clock)
        assert reloaded.get_cash_balance() == Decimal("500")
        assert reloaded.get_config().base_currency == "EUR"

    def test_flush_returns_status(self):
        store = FlakyStore()
        persistence = PortfolioPersistence(store)
        store.failing = True

        assert persistence.flush() is True
        assert persistence.save(TRADES_KEY, decode_document(TRADES_KEY, "[]")) is False

        store.failing = False
        assert persistence.flush() is True


class TestBackends:
    """Test file and SQLite backends"""

    def test_file_store(self, tmp_path):
        store = FileKeyValueStore(str(tmp_path / "docs"))

        assert store.get("k") is None
        store.set("k", "v1")
        store.set("k", "v2")

        assert store.get("k") == "v2"
        assert (tmp_path / "docs" / "k.json").read_text() == "v2"
        assert not (tmp_path / "docs" / "k.json.tmp").exists()

    def test_sqlite_store(self, tmp_path):
        path = str(tmp_path / "ledger.db")
        store = SQLiteKeyValueStore(path)

        assert store.get("k") is None
        store.set("k", "v1")
        store.set("k", "v2")

        assert SQLiteKeyValueStore(path).get("k") == "v2"

    @pytest.mark.parametrize("backend,cls", [
        ("file", FileKeyValueStore),
        ("sqlite", SQLiteKeyValueStore),
        ("memory", MemoryKeyValueStore),
    ])
    def test_create_store(self, tmp_path, backend, cls):
        config = LedgerSettings(data_dir=str(tmp_path), storage_backend=backend)

        assert isinstance(create_store(config), cls)

    @pytest.mark.parametrize("backend", ["file", "sqlite"])
    def test_manager_survives_restart(self, tmp_path, ids, clock, backend):
        config = LedgerSettings(data_dir=str(tmp_path), storage_backend=backend)

        first = PortfolioManager(store=create_store(config), id_generator=ids, clock=clock)
        first.deposit(1000)
        first.add_asset("BTCUSD", Decimal("0.1"), 50000)
        first.take_snapshot()

        second = PortfolioManager(store=create_store(config), id_generator=ids, clock=clock)

        assert second.get_cash_balance() == Decimal("1000")
        assert second.get_assets()[0].quantity == Decimal("0.1")
        assert len(second.get_trade_history()) == 1
        assert [p.value for p in second.get_value_history()] == [Decimal("6000")]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
