"""
Risk Engine

Aggregates the ledger's live totals and the snapshot series into a
PortfolioMetrics report.

Two notions of portfolio size are reported:
- total_value: spot holdings + position equity (margin + unrealized) + cash,
  the headline live size
- series_value: spot holdings + cash, the same definition snapshots use;
  every comparison against history (period P&L, current drawdown,
  VaR scaling) uses this one
"""
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Sequence
from loguru import logger

from ..models import Asset, PortfolioConfig, Position, Snapshot
from .metrics import (
    PeriodPnl,
    calculate_drawdown,
    calculate_period_pnl,
    calculate_returns,
    calculate_sharpe_ratio,
    calculate_sortino_ratio,
    calculate_var,
    calculate_volatility,
)


ZERO = Decimal("0")
HUNDRED = Decimal("100")

PERIOD_DAYS: Dict[str, int] = {
    "day": 1,
    "week": 7,
    "month": 30,
    "year": 365,
}

TOP_HOLDINGS = 5
UNKNOWN_EXCHANGE = "Unknown"


@dataclass(frozen=True)
class HoldingAllocation:
    symbol: str
    allocation: Decimal


@dataclass(frozen=True)
class ExchangeValue:
    exchange: str
    value: Decimal


@dataclass(frozen=True)
class RebalanceDrift:
    """A holding whose allocation is off target by more than the threshold"""
    symbol: str
    target: Decimal
    actual: Decimal
    drift: Decimal  # actual - target, in percentage points


@dataclass
class PortfolioMetrics:
    """Portfolio metrics container"""

    # Totals
    total_value: Decimal
    series_value: Decimal
    cash: Decimal
    total_cost: Decimal
    total_pnl: Decimal
    total_pnl_percent: Decimal

    # Period P&L against snapshots
    day_pnl: PeriodPnl
    week_pnl: PeriodPnl
    month_pnl: PeriodPnl
    year_pnl: PeriodPnl
    all_time_pnl: Decimal

    # Risk
    volatility: Decimal
    sharpe_ratio: Decimal
    sortino_ratio: Decimal
    max_drawdown: Decimal
    current_drawdown: Decimal
    value_at_risk_95: Decimal
    value_at_risk_99: Decimal

    # Allocation
    top_holdings: List[HoldingAllocation] = field(default_factory=list)
    exchange_breakdown: List[ExchangeValue] = field(default_factory=list)

    snapshot_count: int = 0


class RiskEngine:
    """
    Computes PortfolioMetrics

    Stateless: everything comes in as arguments, so the same inputs
    always produce the same report.
    """

    def calculate_metrics(
        self,
        assets: Sequence[Asset],
        positions: Sequence[Position],
        cash: Decimal,
        snapshots: Sequence[Snapshot],
        config: PortfolioConfig,
        now: datetime
    ) -> PortfolioMetrics:
        """
        Calculate comprehensive portfolio metrics

        Args:
            assets: Current spot holdings
            positions: Open leveraged positions
            cash: Cash balance
            snapshots: Snapshot series, ascending
            config: Portfolio config (risk-free rate)
            now: Reference time for period lookbacks

        Returns:
            PortfolioMetrics
        """
        asset_value = sum((a.value for a in assets), ZERO)
        position_value = sum((p.equity for p in positions), ZERO)
        total_cost = sum((a.cost_basis for a in assets), ZERO)

        total_value = asset_value + position_value + cash
        series_value = asset_value + cash
        total_pnl = total_value - total_cost - cash
        total_pnl_percent = (total_pnl / total_cost) * HUNDRED if total_cost > 0 else ZERO

        periods = {
            name: self._period_pnl(snapshots, now - timedelta(days=days), series_value)
            for name, days in PERIOD_DAYS.items()
        }

        values = [s.total_value for s in snapshots]
        returns = calculate_returns(values)

        volatility = calculate_volatility(returns)
        sharpe = calculate_sharpe_ratio(returns, volatility, config.risk_free_rate)
        sortino = calculate_sortino_ratio(returns, config.risk_free_rate)
        max_drawdown, current_drawdown = calculate_drawdown(values, series_value)

        metrics = PortfolioMetrics(
            total_value=total_value,
            series_value=series_value,
            cash=cash,
            total_cost=total_cost,
            total_pnl=total_pnl,
            total_pnl_percent=total_pnl_percent,
            day_pnl=periods["day"],
            week_pnl=periods["week"],
            month_pnl=periods["month"],
            year_pnl=periods["year"],
            all_time_pnl=total_pnl,
            volatility=volatility,
            sharpe_ratio=sharpe,
            sortino_ratio=sortino,
            max_drawdown=max_drawdown,
            current_drawdown=current_drawdown,
            value_at_risk_95=calculate_var(returns, 0.95, series_value),
            value_at_risk_99=calculate_var(returns, 0.99, series_value),
            top_holdings=self.top_holdings(assets),
            exchange_breakdown=self.exchange_breakdown(assets),
            snapshot_count=len(snapshots),
        )

        logger.debug(
            f"Metrics: total_value={total_value} vol={volatility} "
            f"sharpe={sharpe} max_dd={max_drawdown} from {len(returns)} returns"
        )

        return metrics

    @staticmethod
    def _period_pnl(
        snapshots: Sequence[Snapshot],
        cutoff: datetime,
        live_value: Decimal
    ) -> PeriodPnl:
        reference: Optional[Snapshot] = None
        for snapshot in reversed(snapshots):
            if snapshot.timestamp <= cutoff:
                reference = snapshot
                break

        return calculate_period_pnl(
            reference.total_value if reference else None,
            live_value
        )

    @staticmethod
    def top_holdings(assets: Sequence[Asset], limit: int = TOP_HOLDINGS) -> List[HoldingAllocation]:
        ranked = sorted(assets, key=lambda a: a.allocation, reverse=True)
        return [HoldingAllocation(symbol=a.symbol, allocation=a.allocation) for a in ranked[:limit]]

    @staticmethod
    def exchange_breakdown(assets: Sequence[Asset]) -> List[ExchangeValue]:
        """Asset value grouped by exchange tag, first-seen order"""
        breakdown: "OrderedDict[str, Decimal]" = OrderedDict()

        for asset in assets:
            exchange = asset.exchange or UNKNOWN_EXCHANGE
            breakdown[exchange] = breakdown.get(exchange, ZERO) + asset.value

        return [ExchangeValue(exchange=k, value=v) for k, v in breakdown.items()]

    @staticmethod
    def rebalance_drift(assets: Sequence[Asset], config: PortfolioConfig) -> List[RebalanceDrift]:
        """
        Holdings whose allocation deviates from target by more than
        config.rebalance_threshold percentage points

        Targeted symbols that are not held count as 0% allocated.
        """
        if not config.target_allocations:
            return []

        actual = {a.symbol: a.allocation for a in assets}
        threshold = Decimal(str(config.rebalance_threshold))

        drifts = []
        for symbol, target in config.target_allocations.items():
            target_pct = Decimal(str(target))
            current = actual.get(symbol, ZERO)
            drift = current - target_pct

            if abs(drift) > threshold:
                drifts.append(RebalanceDrift(symbol=symbol, target=target_pct, actual=current, drift=drift))

        drifts.sort(key=lambda d: abs(d.drift), reverse=True)

        return drifts
