"""
Tests for leveraged positions
"""
import pytest
from decimal import Decimal

from ledger.ids import SequentialIdGenerator
from ledger.models import PositionSide, TradeSide
from ledger.portfolio import AssetLedger, PositionBook, TradeJournal


@pytest.fixture
def book(clock, ids):
    journal = TradeJournal(AssetLedger(clock), ids, clock)
    return PositionBook(journal, ids, clock)


class TestOpenPosition:
    """Test opening and validation"""

    def test_open(self, book, clock):
        position = book.open_position(
            "BTCUSD", PositionSide.LONG, Decimal("50000"), Decimal("0.1"),
            leverage=Decimal("10"), margin=Decimal("500"), stop_loss=Decimal("48000")
        )

        assert position.id == "id-1"
        assert position.current_price == Decimal("50000")
        assert position.unrealized_pnl == Decimal("0")
        assert position.stop_loss == Decimal("48000")
        assert position.take_profit is None
        assert position.opened_at == clock.now()

    @pytest.mark.parametrize("entry,qty,lev,margin", [
        (100, 0, 1, 100),
        (100, 1, Decimal("0.5"), 100),
        (100, 1, 1, 0),
        (0, 1, 1, 100),
    ])
    def test_rejects_invalid(self, book, entry, qty, lev, margin):
        assert book.open_position("X", PositionSide.LONG, entry, qty, lev, margin) is None
        assert book.get_positions() == []

    @pytest.mark.parametrize("entry,qty,lev,margin", [
        (Decimal("NaN"), 1, 1, 100),
        (100, float("inf"), 1, 100),
        (100, 1, Decimal("Infinity"), 100),
        (100, 1, 1, "nan"),
    ])
    def test_rejects_non_finite(self, book, entry, qty, lev, margin):
        assert book.open_position("X", PositionSide.LONG, entry, qty, lev, margin) is None
        assert book.get_positions() == []

    def test_rejects_non_finite_level(self, book):
        assert book.open_position("X", PositionSide.LONG, 100, 1, 1, 100, stop_loss=Decimal("NaN")) is None
        assert book.get_positions() == []

    def test_id_in_use_is_skipped(self, book):
        first = book.open_position("X", PositionSide.LONG, 100, 1, 1, 100)

        book.id_generator = SequentialIdGenerator()
        second = book.open_position("Y", PositionSide.SHORT, 100, 1, 1, 100)

        assert second.id != first.id
        assert sorted(p.symbol for p in book.get_positions()) == ["X", "Y"]


class TestRepriceAndLevels:
    """Test mark-to-market and level updates"""

    def test_long_and_short_pnl(self, book):
        long_pos = book.open_position("BTCUSD", PositionSide.LONG, 100, 2, 5, 40)
        short_pos = book.open_position("BTCUSD", PositionSide.SHORT, 100, 2, 5, 40)

        assert book.reprice({"BTCUSD": Decimal("110"), "ETHUSD": Decimal("1")}) == 2

        assert book.get_position(long_pos.id).unrealized_pnl == Decimal("100")
        assert book.get_position(long_pos.id).unrealized_pnl_percent == Decimal("250")
        assert book.get_position(short_pos.id).unrealized_pnl == Decimal("-100")

    def test_update_levels_partial(self, book):
        position = book.open_position("X", PositionSide.LONG, 100, 1, 1, 100, stop_loss=90, take_profit=120)

        updated = book.update_position_levels(position.id, take_profit=Decimal("130"))

        assert updated.stop_loss == Decimal("90")
        assert updated.take_profit == Decimal("130")

    def test_update_levels_unknown(self, book):
        assert book.update_position_levels("missing", stop_loss=1) is None

    def test_update_levels_rejects_non_finite(self, book):
        position = book.open_position("X", PositionSide.LONG, 100, 1, 1, 100, stop_loss=90)

        assert book.update_position_levels(position.id, stop_loss=Decimal("NaN"), take_profit=120) is None

        unchanged = book.get_position(position.id)
        assert unchanged.stop_loss == Decimal("90")
        assert unchanged.take_profit is None

    def test_reprice_skips_non_finite(self, book):
        position = book.open_position("X", PositionSide.LONG, 100, 1, 1, 100)

        assert book.reprice({"X": float("nan")}) == 0
        assert book.get_position(position.id).current_price == Decimal("100")


class TestClosePosition:
    """Test settlement on close"""

    def test_close_long_credits_margin_and_pnl(self, book):
        position = book.open_position("X", PositionSide.LONG, 100, 1, 1, 100)

        trade = book.close_position(position.id, Decimal("150"))

        assert trade.side == TradeSide.SELL
        assert trade.price == Decimal("150")
        assert trade.notes == "Closed long position. PnL: 50.00"
        assert book.journal.cash_balance == Decimal("150")
        assert book.get_positions() == []

    def test_close_short_at_loss(self, book):
        position = book.open_position("X", PositionSide.SHORT, 100, 1, 2, 50)

        trade = book.close_position(position.id, 110)

        assert trade.side == TradeSide.BUY
        assert trade.notes == "Closed short position. PnL: -20.00"
        assert book.journal.cash_balance == Decimal("30")

    def test_close_does_not_touch_spot_holdings(self, book):
        book.journal.asset_ledger.add_asset("X", 1, 100, 100)
        position = book.open_position("X", PositionSide.LONG, 100, 1, 1, 100)

        book.close_position(position.id, 120)

        assert book.journal.asset_ledger.get_asset("X").quantity == Decimal("1")

    def test_close_unknown(self, book):
        assert book.close_position("missing", 100) is None
        assert book.journal.get_trade_history() == []

    def test_close_at_non_finite_price(self, book):
        position = book.open_position("X", PositionSide.LONG, 100, 1, 1, 100)

        assert book.close_position(position.id, Decimal("Infinity")) is None
        assert book.get_position(position.id) is not None
        assert book.journal.cash_balance == Decimal("0")
        assert book.journal.get_trade_history() == []

    def test_closed_position_cannot_close_twice(self, book):
        position = book.open_position("X", PositionSide.LONG, 100, 1, 1, 100)

        assert book.close_position(position.id, 100) is not None
        assert book.close_position(position.id, 100) is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
