"""
Portfolio Ledger

Tracks holdings, leveraged positions, cash and value history with:
- Weighted-average cost basis for spot holdings
- Realized P&L settlement on position close
- Append-only trade and cash journal
- Retained value snapshots for risk analytics
- Versioned persistence and whole-ledger export/import

Components:
- PortfolioManager: Facade over every component
- AssetLedger: Spot holdings and allocation
- PositionBook: Leveraged long/short positions
- TradeJournal: Trade history and cash balance
- SnapshotStore: Value history with retention
- ConfigStore: Portfolio parameters

Usage:
    manager = PortfolioManager(store=FileKeyValueStore("./data/portfolio"))
    manager.deposit(Decimal("1000"))
    manager.add_asset("BTCUSD", Decimal("0.1"), Decimal("50000"))
    manager.update_prices({"BTCUSD": Decimal("60000")})
    metrics = manager.calculate_metrics()
"""

from .assets import AssetLedger
from .positions import PositionBook
from .journal import TradeJournal, CASH_SYMBOL
from .snapshots import SnapshotStore, ValuePoint
from .config import ConfigStore
from .manager import PortfolioManager

__all__ = [
    "AssetLedger",
    "PositionBook",
    "TradeJournal",
    "CASH_SYMBOL",
    "SnapshotStore",
    "ValuePoint",
    "ConfigStore",
    "PortfolioManager",
]
