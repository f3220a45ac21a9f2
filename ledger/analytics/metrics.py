"""
Risk Metrics

Pure functions over a portfolio value series:
- Returns between adjacent snapshots
- Annualized volatility
- Sharpe and Sortino ratios
- Maximum and current drawdown
- Historical Value-at-Risk
- Period P&L against a reference snapshot

Annualization is fixed: the series is assumed to be sampled daily and
PERIODS_PER_YEAR = 365 is used whatever the actual spacing.
"""
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple


PERIODS_PER_YEAR = 365

ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class PeriodPnl:
    """P&L over a lookback window"""
    pnl: Decimal
    percent: Decimal


def calculate_returns(values: Sequence[Decimal]) -> List[Decimal]:
    """
    Calculate returns from a value series

    Pairs whose previous value is not positive are skipped.

    Args:
        values: Values in chronological order

    Returns:
        List of returns (as decimals, not percentages)
    """
    returns = []
    for i in range(1, len(values)):
        prev = values[i - 1]
        if prev > 0:
            returns.append((values[i] - prev) / prev)

    return returns


def _mean(values: List[float]) -> float:
    return sum(values) / len(values)


def calculate_volatility(returns: Sequence[Decimal]) -> Decimal:
    """
    Annualized volatility in percent

    Population standard deviation (divide by N) * sqrt(365) * 100.

    Args:
        returns: List of returns

    Returns:
        Volatility percent, 0 with fewer than two returns
    """
    if len(returns) < 2:
        return ZERO

    returns_float = [float(r) for r in returns]
    mean = _mean(returns_float)

    variance = sum((r - mean) ** 2 for r in returns_float) / len(returns_float)

    return Decimal(str(math.sqrt(variance * PERIODS_PER_YEAR) * 100))


def calculate_sharpe_ratio(
    returns: Sequence[Decimal],
    volatility: Decimal,
    risk_free_rate: float = 0.05
) -> Decimal:
    """
    Calculate Sharpe Ratio

    Sharpe = (Mean Return * 365 - Risk Free Rate) / (Volatility / 100)

    Args:
        returns: List of returns
        volatility: Annualized volatility percent from calculate_volatility
        risk_free_rate: Annual risk-free rate as a decimal

    Returns:
        Sharpe ratio, 0 with no returns or zero volatility
    """
    if len(returns) == 0 or volatility == 0:
        return ZERO

    annual_mean = _mean([float(r) for r in returns]) * PERIODS_PER_YEAR

    sharpe = (annual_mean - risk_free_rate) / (float(volatility) / 100)

    return Decimal(str(sharpe))


def calculate_sortino_ratio(
    returns: Sequence[Decimal],
    risk_free_rate: float = 0.05
) -> Decimal:
    """
    Calculate Sortino Ratio

    Same numerator as Sharpe. The denominator is the annualized
    downside deviation: sqrt(mean(min(r, 0)^2) * 365) over all returns.

    Args:
        returns: List of returns
        risk_free_rate: Annual risk-free rate as a decimal

    Returns:
        Sortino ratio, 0 when no return is negative
    """
    returns_float = [float(r) for r in returns]

    if not any(r < 0 for r in returns_float):
        return ZERO

    downside_variance = _mean([min(r, 0.0) ** 2 for r in returns_float])
    downside_deviation = math.sqrt(downside_variance * PERIODS_PER_YEAR)

    if downside_deviation == 0:
        return ZERO

    annual_mean = _mean(returns_float) * PERIODS_PER_YEAR

    return Decimal(str((annual_mean - risk_free_rate) / downside_deviation))


def calculate_drawdown(
    values: Sequence[Decimal],
    live_value: Decimal
) -> Tuple[Decimal, Decimal]:
    """
    Calculate maximum and current drawdown

    Walks the series with a running peak. Current drawdown compares
    that peak with the live value, not the last snapshot.

    Args:
        values: Values in chronological order
        live_value: Current portfolio value

    Returns:
        Tuple of (max_drawdown_pct, current_drawdown_pct), both >= 0
    """
    if len(values) == 0:
        return ZERO, ZERO

    peak = values[0]
    max_dd = ZERO

    for value in values:
        if value > peak:
            peak = value

        if peak > 0:
            max_dd = max(max_dd, (peak - value) / peak)

    current_dd = (peak - live_value) / peak if peak > 0 else ZERO

    return max_dd * HUNDRED, max(ZERO, current_dd * HUNDRED)


def calculate_var(
    returns: Sequence[Decimal],
    confidence_level: float,
    live_value: Decimal
) -> Decimal:
    """
    Calculate Value at Risk (VaR) using historical method

    The tail return sits at index floor((1 - confidence) * N) of the
    ascending returns. VaR is the loss that return implies on the live
    value. A non-negative tail return means no loss, so VaR is 0.

    Args:
        returns: List of returns
        confidence_level: Confidence level (e.g., 0.95 for 95% VaR)
        live_value: Current portfolio value

    Returns:
        VaR in currency (non-negative)
    """
    if len(returns) == 0:
        return ZERO

    sorted_returns = sorted(returns)

    index = math.floor((1 - confidence_level) * len(sorted_returns))
    index = min(max(index, 0), len(sorted_returns) - 1)

    tail = sorted_returns[index]
    if tail >= 0:
        return ZERO

    return abs(tail) * live_value


def calculate_period_pnl(
    reference_value: Optional[Decimal],
    live_value: Decimal
) -> PeriodPnl:
    """
    P&L of the live value against a reference snapshot value

    Args:
        reference_value: Value of the most recent snapshot at or before
            the period start, or None if there is none
        live_value: Current portfolio value

    Returns:
        PeriodPnl; exactly zero when there is no reference
    """
    if reference_value is None:
        return PeriodPnl(pnl=ZERO, percent=ZERO)

    pnl = live_value - reference_value
    percent = (pnl / reference_value) * HUNDRED if reference_value > 0 else ZERO

    return PeriodPnl(pnl=pnl, percent=percent)
