"""
Tests for risk metrics and the risk engine
"""
import math
import pytest
from decimal import Decimal
from datetime import timedelta

from ledger.analytics import (
    RiskEngine,
    calculate_drawdown,
    calculate_period_pnl,
    calculate_returns,
    calculate_sharpe_ratio,
    calculate_sortino_ratio,
    calculate_var,
    calculate_volatility,
)
from ledger.models import PortfolioConfig, Position, PositionSide, Snapshot
from ledger.portfolio import AssetLedger


def D(values):
    return [Decimal(str(v)) for v in values]


class TestReturnsAndVolatility:
    """Test return series and volatility"""

    def test_returns(self):
        assert calculate_returns(D([100, 110, 99])) == [Decimal("0.1"), Decimal("-0.1")]

    def test_returns_skip_non_positive_previous(self):
        assert calculate_returns(D([0, 100, 110])) == [Decimal("0.1")]

    def test_volatility_needs_two_returns(self):
        assert calculate_volatility([]) == Decimal("0")
        assert calculate_volatility(D([0.05])) == Decimal("0")

    def test_volatility_population_std(self):
        vol = calculate_volatility(D([0.01, -0.01]))

        assert float(vol) == pytest.approx(0.01 * math.sqrt(365) * 100)


class TestRatios:
    """Test Sharpe and Sortino"""

    def test_sharpe(self):
        returns = D([0.01, -0.01, 0.02])
        vol = calculate_volatility(returns)

        sharpe = calculate_sharpe_ratio(returns, vol, 0.05)

        mean = sum([0.01, -0.01, 0.02]) / 3
        assert float(sharpe) == pytest.approx((mean * 365 - 0.05) / (float(vol) / 100))

    def test_sharpe_zero_volatility(self):
        assert calculate_sharpe_ratio(D([0.01, 0.01]), Decimal("0")) == Decimal("0")
        assert calculate_sharpe_ratio([], Decimal("10")) == Decimal("0")

    def test_sortino_uses_all_returns(self):
        returns = [0.02, -0.01, 0.03, -0.02]

        sortino = calculate_sortino_ratio(D(returns), 0.05)

        downside = math.sqrt(((0.01 ** 2) + (0.02 ** 2)) / 4 * 365)
        expected = (sum(returns) / 4 * 365 - 0.05) / downside
        assert float(sortino) == pytest.approx(expected)

    def test_sortino_without_losses(self):
        assert calculate_sortino_ratio(D([0.01, 0.02])) == Decimal("0")


class TestDrawdown:
    """Test max and current drawdown"""

    def test_max_drawdown(self):
        max_dd, current_dd = calculate_drawdown(D([100, 120, 90, 110]), Decimal("110"))

        assert max_dd == Decimal("25")
        assert float(current_dd) == pytest.approx(100 * 10 / 120)

    def test_current_drawdown_clamped(self):
        _, current_dd = calculate_drawdown(D([100, 120]), Decimal("150"))

        assert current_dd == Decimal("0")

    def test_empty_series(self):
        assert calculate_drawdown([], Decimal("100")) == (Decimal("0"), Decimal("0"))


class TestValueAtRisk:
    """Test historical VaR"""

    def test_var_index(self):
        returns = D([-0.05, -0.02, 0.01, 0.03] * 5)

        var95 = calculate_var(returns, 0.95, Decimal("1000"))

        assert var95 == Decimal("50")

    def test_var_monotone(self):
        returns = D([-0.08, -0.03, -0.01, 0.0, 0.02, 0.04] * 20)

        var95 = calculate_var(returns, 0.95, Decimal("1000"))
        var99 = calculate_var(returns, 0.99, Decimal("1000"))

        assert var99 >= var95

    def test_var_no_loss_in_tail(self):
        assert calculate_var(D([0.01, 0.02]), 0.95, Decimal("1000")) == Decimal("0")
        assert calculate_var([], 0.95, Decimal("1000")) == Decimal("0")


class TestPeriodPnl:
    """Test period P&L"""

    def test_no_reference(self):
        result = calculate_period_pnl(None, Decimal("500"))

        assert result.pnl == Decimal("0")
        assert result.percent == Decimal("0")

    def test_against_reference(self):
        result = calculate_period_pnl(Decimal("400"), Decimal("500"))

        assert result.pnl == Decimal("100")
        assert result.percent == Decimal("25")


class TestRiskEngine:
    """Test aggregate metrics"""

    def _snapshots(self, start, values):
        return [
            Snapshot(timestamp=start + timedelta(days=i), total_value=Decimal(v), cash=Decimal(v))
            for i, v in enumerate(values)
        ]

    def test_metrics_totals(self, clock):
        ledger = AssetLedger(clock)
        ledger.add_asset("BTCUSD", Decimal("0.1"), 50000, 60000, exchange="binance")
        ledger.add_asset("ETHUSD", 1, 2000, 2000)

        metrics = RiskEngine().calculate_metrics(
            assets=ledger.get_assets(),
            positions=[],
            cash=Decimal("1000"),
            snapshots=[],
            config=PortfolioConfig(),
            now=clock.now(),
        )

        assert metrics.total_value == Decimal("9000")
        assert metrics.total_cost == Decimal("7000")
        assert metrics.total_pnl == Decimal("1000")
        assert float(metrics.total_pnl_percent) == pytest.approx(100 / 7)
        assert metrics.all_time_pnl == metrics.total_pnl
        assert metrics.day_pnl.pnl == Decimal("0")
        assert [h.symbol for h in metrics.top_holdings] == ["BTCUSD", "ETHUSD"]
        assert [(e.exchange, e.value) for e in metrics.exchange_breakdown] == [
            ("binance", Decimal("6000")),
            ("Unknown", Decimal("2000")),
        ]

    def test_positions_count_toward_total_value(self, clock):
        position = Position(
            id="p1", symbol="X", side=PositionSide.LONG, entry_price=Decimal("100"),
            current_price=Decimal("110"), quantity=Decimal("1"), leverage=Decimal("1"),
            margin=Decimal("100"), opened_at=clock.now(),
        )

        metrics = RiskEngine().calculate_metrics([], [position], Decimal("50"), [], PortfolioConfig(), clock.now())

        assert metrics.total_value == Decimal("160")
        assert metrics.series_value == Decimal("50")

    def test_period_pnl_uses_latest_snapshot_before_cutoff(self, clock):
        start = clock.now()
        snapshots = self._snapshots(start, ["100", "200", "300", "400"])
        now = start + timedelta(days=3)

        metrics = RiskEngine().calculate_metrics([], [], Decimal("500"), snapshots, PortfolioConfig(), now)

        # day cutoff = day 2 -> 300
        assert metrics.day_pnl.pnl == Decimal("200")
        # week cutoff precedes every snapshot
        assert metrics.week_pnl.pnl == Decimal("0")
        assert metrics.snapshot_count == 4

    def test_top_holdings_limited_to_five(self, clock):
        ledger = AssetLedger(clock)
        for i in range(7):
            ledger.add_asset(f"S{i}", 1, 10 * (i + 1), 10 * (i + 1))

        top = RiskEngine.top_holdings(ledger.get_assets())

        assert [h.symbol for h in top] == ["S6", "S5", "S4", "S3", "S2"]


class TestRebalanceDrift:
    """Test drift against target allocations"""

    def test_no_targets(self, clock):
        assert RiskEngine.rebalance_drift([], PortfolioConfig()) == []

    def test_drift_over_threshold(self, clock):
        ledger = AssetLedger(clock)
        ledger.add_asset("BTCUSD", 1, 70, 70)
        ledger.add_asset("ETHUSD", 1, 30, 30)
        config = PortfolioConfig(
            target_allocations={"BTCUSD": 50, "ETHUSD": 47, "SOLUSD": 3},
            rebalance_threshold=5,
        )

        drifts = RiskEngine.rebalance_drift(ledger.get_assets(), config)

        assert [d.symbol for d in drifts] == ["BTCUSD", "ETHUSD"]
        assert drifts[0].drift == Decimal("20")
        assert drifts[1].drift == Decimal("-17")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
