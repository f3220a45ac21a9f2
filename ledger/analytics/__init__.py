"""
Risk Analytics

Metrics derived from the snapshot series and live totals:
- Annualized volatility
- Sharpe and Sortino ratios
- Maximum and current drawdown
- Historical VaR at 95% and 99%
- Day/week/month/year P&L
- Top holdings and exchange breakdown
- Rebalance drift against target allocations
"""

from .metrics import (
    PERIODS_PER_YEAR,
    PeriodPnl,
    calculate_returns,
    calculate_volatility,
    calculate_sharpe_ratio,
    calculate_sortino_ratio,
    calculate_drawdown,
    calculate_var,
    calculate_period_pnl,
)
from .risk import (
    RiskEngine,
    PortfolioMetrics,
    HoldingAllocation,
    ExchangeValue,
    RebalanceDrift,
)

__all__ = [
    "PERIODS_PER_YEAR",
    "PeriodPnl",
    "calculate_returns",
    "calculate_volatility",
    "calculate_sharpe_ratio",
    "calculate_sortino_ratio",
    "calculate_drawdown",
    "calculate_var",
    "calculate_period_pnl",
    "RiskEngine",
    "PortfolioMetrics",
    "HoldingAllocation",
    "ExchangeValue",
    "RebalanceDrift",
]
