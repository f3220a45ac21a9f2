#!/usr/bin/env python3
"""
TradeVision Ledger CLI - manage a portfolio from the command line
"""
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ledger.models import PositionSide, TradeSide
from ledger.persistence import create_store
from ledger.portfolio import PortfolioManager
from shared.config.settings import settings
from shared.utils.logging import setup_logging


app = typer.Typer(help="TradeVision Ledger - portfolio tracking and risk analytics")
console = Console()


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level")):
    """Configure logging for every command"""
    setup_logging("DEBUG" if verbose else settings.log_level, settings.log_file)


def _manager() -> PortfolioManager:
    return PortfolioManager(
        store=create_store(settings.ledger),
        retention_days=settings.ledger.snapshot_retention_days,
    )


def _dec(value: Optional[str], name: str = "value") -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(value)
    except InvalidOperation:
        raise typer.BadParameter(f"{name} must be a number, got {value!r}")


def _pairs(items: List[str]) -> Dict[str, str]:
    """Parse KEY=VALUE arguments"""
    pairs = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected KEY=VALUE, got {item!r}")
        pairs[key] = value
    return pairs


def _fail(message: str) -> None:
    console.print(f"[red]✗ {message}[/red]")
    raise typer.Exit(code=1)


def _money(value: Decimal) -> str:
    return f"{value:,.2f}"


@app.command()
def info():
    """Display system information"""
    console.print(Panel.fit(
        f"[bold blue]{settings.app_name}[/bold blue] v{settings.app_version}\n"
        f"Environment: {settings.environment}\n"
        f"Storage: {settings.ledger.storage_backend} @ {settings.ledger.data_dir}",
        title="System Information"
    ))


# ----------------------------------------------------------------------
# Cash


@app.command()
def deposit(amount: str = typer.Argument(..., help="Amount to deposit")):
    """Deposit cash"""
    manager = _manager()
    if not manager.deposit(_dec(amount, "amount")):
        _fail("Deposit rejected: amount must be positive")
    console.print(f"[green]✓ Deposited {amount}[/green] | Cash: {_money(manager.get_cash_balance())}")


@app.command()
def withdraw(amount: str = typer.Argument(..., help="Amount to withdraw")):
    """Withdraw cash"""
    manager = _manager()
    if not manager.withdraw(_dec(amount, "amount")):
        _fail(f"Withdrawal rejected: cash balance is {_money(manager.get_cash_balance())}")
    console.print(f"[green]✓ Withdrew {amount}[/green] | Cash: {_money(manager.get_cash_balance())}")


# ----------------------------------------------------------------------
# Spot trades and holdings


def _trade(side: TradeSide, symbol: str, quantity: str, price: str, fee: str,
           exchange: Optional[str], notes: Optional[str]) -> None:
    manager = _manager()
    trade = manager.record_trade(
        symbol=symbol,
        side=side,
        price=_dec(price, "price"),
        quantity=_dec(quantity, "quantity"),
        fee=_dec(fee, "fee"),
        exchange=exchange,
        notes=notes,
    )
    if trade is None:
        _fail("Trade rejected: price and quantity must be positive")
    console.print(
        f"[green]✓ {side.value.upper()} {trade.quantity} {trade.symbol} @ {trade.price}[/green] "
        f"| Total: {_money(trade.total)} | id={trade.id}"
    )


@app.command()
def buy(
    symbol: str = typer.Argument(..., help="Symbol (e.g., BTCUSD)"),
    quantity: str = typer.Argument(..., help="Units bought"),
    price: str = typer.Argument(..., help="Execution price"),
    fee: str = typer.Option("0", help="Fee paid"),
    exchange: Optional[str] = typer.Option(None, help="Exchange tag"),
    notes: Optional[str] = typer.Option(None, help="Free-form note")
):
    """Record a spot buy"""
    _trade(TradeSide.BUY, symbol, quantity, price, fee, exchange, notes)


@app.command()
def sell(
    symbol: str = typer.Argument(..., help="Symbol (e.g., BTCUSD)"),
    quantity: str = typer.Argument(..., help="Units sold"),
    price: str = typer.Argument(..., help="Execution price"),
    fee: str = typer.Option("0", help="Fee paid"),
    exchange: Optional[str] = typer.Option(None, help="Exchange tag"),
    notes: Optional[str] = typer.Option(None, help="Free-form note")
):
    """Record a spot sell"""
    _trade(TradeSide.SELL, symbol, quantity, price, fee, exchange, notes)


@app.command()
def add(
    symbol: str = typer.Argument(..., help="Symbol (e.g., BTCUSD)"),
    quantity: str = typer.Argument(..., help="Units held"),
    avg_cost: str = typer.Argument(..., help="Average cost per unit"),
    price: Optional[str] = typer.Option(None, help="Current price (defaults to avg cost)"),
    exchange: Optional[str] = typer.Option(None, help="Exchange tag"),
    name: Optional[str] = typer.Option(None, help="Display name")
):
    """Add to a holding without journaling a trade"""
    manager = _manager()
    asset = manager.add_asset(
        symbol=symbol,
        quantity=_dec(quantity, "quantity"),
        avg_cost=_dec(avg_cost, "avg_cost"),
        current_price=_dec(price, "price"),
        exchange=exchange,
        name=name,
    )
    if asset is None:
        _fail("Holding rejected: quantity and average cost must be positive")
    console.print(f"[green]✓ {asset.symbol}: {asset.quantity} @ avg {asset.avg_cost}[/green]")


@app.command()
def remove(symbol: str = typer.Argument(..., help="Symbol to remove")):
    """Remove a whole holding"""
    if not _manager().remove_asset(symbol):
        _fail(f"No holding for {symbol}")
    console.print(f"[green]✓ Removed {symbol}[/green]")


@app.command()
def prices(items: List[str] = typer.Argument(..., help="SYMBOL=PRICE pairs")):
    """Apply a batch of prices to holdings and positions"""
    price_map = {symbol: _dec(price, symbol) for symbol, price in _pairs(items).items()}
    updated = _manager().update_prices(price_map)
    console.print(f"[green]✓ Repriced {updated} holdings/positions[/green]")


# ----------------------------------------------------------------------
# Positions


@app.command("open")
def open_position(
    symbol: str = typer.Argument(..., help="Symbol (e.g., BTCUSD)"),
    side: PositionSide = typer.Argument(..., help="long or short"),
    entry_price: str = typer.Argument(..., help="Entry price"),
    quantity: str = typer.Argument(..., help="Position size"),
    leverage: str = typer.Option("1", help="Leverage multiplier"),
    margin: Optional[str] = typer.Option(None, help="Margin (defaults to notional / leverage)"),
    stop_loss: Optional[str] = typer.Option(None, help="Stop-loss level"),
    take_profit: Optional[str] = typer.Option(None, help="Take-profit level"),
    exchange: Optional[str] = typer.Option(None, help="Exchange tag")
):
    """Open a leveraged position"""
    position = _manager().open_position(
        symbol=symbol,
        side=side,
        entry_price=_dec(entry_price, "entry_price"),
        quantity=_dec(quantity, "quantity"),
        leverage=_dec(leverage, "leverage"),
        margin=_dec(margin, "margin"),
        exchange=exchange,
        stop_loss=_dec(stop_loss, "stop_loss"),
        take_profit=_dec(take_profit, "take_profit"),
    )
    if position is None:
        _fail("Position rejected: check price, quantity, margin and leverage (>= 1)")
    console.print(
        f"[green]✓ Opened {position.side.value} {position.quantity} {position.symbol} "
        f"@ {position.entry_price} x{position.leverage}[/green] | id={position.id}"
    )


@app.command()
def close(
    position_id: str = typer.Argument(..., help="Position id"),
    price: str = typer.Argument(..., help="Close price")
):
    """Close a position and settle P&L to cash"""
    manager = _manager()
    trade = manager.close_position(position_id, _dec(price, "price"))
    if trade is None:
        _fail(f"Position not found: {position_id}")
    console.print(f"[green]✓ {trade.notes}[/green] | Cash: {_money(manager.get_cash_balance())}")


@app.command()
def levels(
    position_id: str = typer.Argument(..., help="Position id"),
    stop_loss: Optional[str] = typer.Option(None, help="New stop-loss level"),
    take_profit: Optional[str] = typer.Option(None, help="New take-profit level")
):
    """Update stop-loss / take-profit"""
    position = _manager().update_position_levels(
        position_id,
        stop_loss=_dec(stop_loss, "stop_loss"),
        take_profit=_dec(take_profit, "take_profit"),
    )
    if position is None:
        _fail(f"Position not found: {position_id}")
    console.print(
        f"[green]✓ {position.id}: SL={position.stop_loss} TP={position.take_profit}[/green]"
    )


# ----------------------------------------------------------------------
# Views


@app.command()
def assets():
    """List holdings"""
    manager = _manager()

    table = Table(title="Holdings")
    table.add_column("Symbol", style="cyan")
    table.add_column("Quantity", justify="right")
    table.add_column("Avg Cost", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Value", justify="right")
    table.add_column("P&L", justify="right")
    table.add_column("P&L %", justify="right")
    table.add_column("Alloc %", justify="right")
    table.add_column("Exchange", style="magenta")

    for asset in manager.get_assets():
        color = "green" if asset.pnl >= 0 else "red"
        table.add_row(
            asset.symbol,
            str(asset.quantity),
            _money(asset.avg_cost),
            _money(asset.current_price),
            _money(asset.value),
            f"[{color}]{_money(asset.pnl)}[/{color}]",
            f"[{color}]{asset.pnl_percent:.2f}[/{color}]",
            f"{asset.allocation:.2f}",
            asset.exchange or "-",
        )

    console.print(table)
    console.print(f"Cash: {_money(manager.get_cash_balance())}")


@app.command()
def positions():
    """List open positions"""
    table = Table(title="Open Positions")
    table.add_column("ID", style="cyan")
    table.add_column("Symbol")
    table.add_column("Side", style="magenta")
    table.add_column("Qty", justify="right")
    table.add_column("Entry", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Lev", justify="right")
    table.add_column("Margin", justify="right")
    table.add_column("Unrealized", justify="right")
    table.add_column("SL / TP")

    for position in _manager().get_positions():
        color = "green" if position.unrealized_pnl >= 0 else "red"
        table.add_row(
            position.id,
            position.symbol,
            position.side.value,
            str(position.quantity),
            _money(position.entry_price),
            _money(position.current_price),
            f"x{position.leverage}",
            _money(position.margin),
            f"[{color}]{_money(position.unrealized_pnl)} ({position.unrealized_pnl_percent:.2f}%)[/{color}]",
            f"{position.stop_loss or '-'} / {position.take_profit or '-'}",
        )

    console.print(table)


@app.command()
def trades(
    symbol: Optional[str] = typer.Option(None, help="Filter by symbol"),
    limit: Optional[int] = typer.Option(20, help="Max records to show")
):
    """Show trade history, newest first"""
    table = Table(title="Trade History")
    table.add_column("Time", style="dim")
    table.add_column("Symbol", style="cyan")
    table.add_column("Side", style="magenta")
    table.add_column("Qty", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Notes")

    for trade in _manager().get_trade_history(symbol=symbol, limit=limit):
        table.add_row(
            trade.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            trade.symbol,
            trade.side.value,
            str(trade.quantity),
            _money(trade.price),
            _money(trade.total),
            trade.notes or "",
        )

    console.print(table)


@app.command()
def snapshot():
    """Record the current total value"""
    taken = _manager().take_snapshot()
    if taken is None:
        _fail("Snapshot rejected: timestamp not after the last snapshot")
    console.print(f"[green]✓ Snapshot: {_money(taken.total_value)}[/green] at {taken.timestamp.isoformat()}")


@app.command()
def history(days: int = typer.Option(30, help="Lookback in days")):
    """Show value history"""
    table = Table(title=f"Value History ({days}d)")
    table.add_column("Time", style="dim")
    table.add_column("Value", justify="right")

    for point in _manager().get_value_history(days):
        table.add_row(point.timestamp.strftime("%Y-%m-%d %H:%M"), _money(point.value))

    console.print(table)


@app.command()
def metrics():
    """Show portfolio metrics"""
    m = _manager().calculate_metrics()

    console.print(Panel.fit(
        f"Total Value:   {_money(m.total_value)}\n"
        f"Cash:          {_money(m.cash)}\n"
        f"Cost Basis:    {_money(m.total_cost)}\n"
        f"Total P&L:     {_money(m.total_pnl)} ({m.total_pnl_percent:.2f}%)\n"
        f"\n"
        f"Day P&L:       {_money(m.day_pnl.pnl)} ({m.day_pnl.percent:.2f}%)\n"
        f"Week P&L:      {_money(m.week_pnl.pnl)} ({m.week_pnl.percent:.2f}%)\n"
        f"Month P&L:     {_money(m.month_pnl.pnl)} ({m.month_pnl.percent:.2f}%)\n"
        f"Year P&L:      {_money(m.year_pnl.pnl)} ({m.year_pnl.percent:.2f}%)\n"
        f"\n"
        f"Volatility:    {m.volatility:.2f}%\n"
        f"Sharpe:        {m.sharpe_ratio:.2f}\n"
        f"Sortino:       {m.sortino_ratio:.2f}\n"
        f"Max Drawdown:  {m.max_drawdown:.2f}%\n"
        f"Drawdown:      {m.current_drawdown:.2f}%\n"
        f"VaR 95%:       {_money(m.value_at_risk_95)}\n"
        f"VaR 99%:       {_money(m.value_at_risk_99)}\n"
        f"Snapshots:     {m.snapshot_count}",
        title="Portfolio Metrics"
    ))

    if m.top_holdings:
        table = Table(title="Top Holdings")
        table.add_column("Symbol", style="cyan")
        table.add_column("Alloc %", justify="right")
        for holding in m.top_holdings:
            table.add_row(holding.symbol, f"{holding.allocation:.2f}")
        console.print(table)

    if m.exchange_breakdown:
        table = Table(title="By Exchange")
        table.add_column("Exchange", style="magenta")
        table.add_column("Value", justify="right")
        for row in m.exchange_breakdown:
            table.add_row(row.exchange, _money(row.value))
        console.print(table)


@app.command()
def rebalance():
    """Show holdings drifting from their target allocation"""
    drifts = _manager().check_rebalance()
    if not drifts:
        console.print("[green]✓ Within threshold[/green]")
        return

    table = Table(title="Rebalance Drift")
    table.add_column("Symbol", style="cyan")
    table.add_column("Target %", justify="right")
    table.add_column("Actual %", justify="right")
    table.add_column("Drift", justify="right")
    for drift in drifts:
        table.add_row(drift.symbol, f"{drift.target:.2f}", f"{drift.actual:.2f}", f"{drift.drift:+.2f}")

    console.print(table)


# ----------------------------------------------------------------------
# Config and data


@app.command("config-show")
def config_show():
    """Show portfolio config"""
    config = _manager().get_config()
    console.print_json(config.model_dump_json(by_alias=True))


def _config_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


@app.command("config-set")
def config_set(items: List[str] = typer.Argument(..., help="KEY=VALUE pairs (JSON values accepted)")):
    """Update portfolio config"""
    updates = {key: _config_value(value) for key, value in _pairs(items).items()}
    config = _manager().update_config(**updates)
    if config is None:
        _fail(f"Config update rejected: {', '.join(sorted(updates))}")
    console.print_json(config.model_dump_json(by_alias=True))


@app.command()
def export(output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write to file instead of stdout")):
    """Export the whole ledger as JSON"""
    data = _manager().export_data()
    if output is None:
        typer.echo(data)
        return

    output.write_text(data, encoding="utf-8")
    console.print(f"[green]✓ Exported to {output}[/green]")


@app.command("import")
def import_(path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Exported JSON file")):
    """Replace the ledger with an exported document"""
    if not _manager().import_data(path.read_text(encoding="utf-8")):
        _fail(f"Import rejected: {path}")
    console.print(f"[green]✓ Imported {path}[/green]")


if __name__ == "__main__":
    app()
