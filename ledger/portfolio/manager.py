"""
Portfolio Manager

Facade over the ledger components:
- AssetLedger (spot holdings)
- PositionBook (leveraged positions)
- TradeJournal (trades and cash)
- SnapshotStore (value history)
- ConfigStore (named parameters)
- RiskEngine (metrics on demand)

Every successful mutation persists the documents it touched. Reads
return independent copies. Single writer, no internal locking; the
async PortfolioService serializes access when needed.
"""
import json
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union
from loguru import logger
from pydantic import ValidationError

from ..analytics.risk import PortfolioMetrics, RebalanceDrift, RiskEngine
from ..ids import Clock, IdGenerator, SystemClock, UUIDGenerator
from ..models import Asset, PortfolioConfig, Position, PositionSide, Snapshot, TradeRecord, TradeSide
from ..persistence.kv import KeyValueStore, MemoryKeyValueStore
from ..persistence.schema import (
    CONFIG_KEY,
    EXPORT_REQUIRED_KEYS,
    PORTFOLIO_KEY,
    SCHEMA_VERSION,
    SNAPSHOTS_KEY,
    TRADES_KEY,
    ConfigDocument,
    ExportDocument,
    PortfolioDocument,
    SnapshotsDocument,
    TradesDocument,
)
from ..persistence.store import PortfolioPersistence
from .assets import AssetLedger
from .config import ConfigStore
from .journal import TradeJournal
from .positions import PositionBook
from .snapshots import DEFAULT_RETENTION_DAYS, SnapshotStore, ValuePoint


class PortfolioManager:
    """
    Portfolio Manager

    Responsibilities:
    - Route commands to the owning component
    - Persist touched documents after each successful mutation
    - Assemble inputs for the risk engine
    - Export and import the whole ledger atomically
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        id_generator: Optional[IdGenerator] = None,
        clock: Optional[Clock] = None,
        retention_days: int = DEFAULT_RETENTION_DAYS
    ):
        """
        Initialize Portfolio Manager

        Args:
            store: Document backend (in-memory if omitted)
            id_generator: Source of position and trade ids
            clock: Source of timestamps
            retention_days: Snapshot retention window
        """
        self.id_generator = id_generator or UUIDGenerator()
        self.clock = clock or SystemClock()
        self.retention_days = retention_days

        self.persistence = PortfolioPersistence(store or MemoryKeyValueStore())
        self.risk_engine = RiskEngine()

        # Components
        self.assets = AssetLedger(self.clock)
        self.journal = TradeJournal(self.assets, self.id_generator, self.clock)
        self.positions = PositionBook(self.journal, self.id_generator, self.clock)
        self.snapshots = SnapshotStore(self.clock, retention_days)
        self.config = ConfigStore()

        self._load()

        logger.info(
            f"Initialized PortfolioManager: {len(self.assets.get_assets())} assets, "
            f"{len(self.positions.get_positions())} positions, cash={self.journal.cash_balance}"
        )

    # ------------------------------------------------------------------
    # Assets

    def add_asset(
        self,
        symbol: str,
        quantity: Decimal,
        avg_cost: Decimal,
        current_price: Optional[Decimal] = None,
        exchange: Optional[str] = None,
        name: Optional[str] = None
    ) -> Optional[Asset]:
        """Add to a holding; current_price defaults to avg_cost"""

        asset = self.assets.add_asset(
            symbol=symbol,
            quantity=quantity,
            avg_cost=avg_cost,
            current_price=current_price if current_price is not None else avg_cost,
            exchange=exchange,
            name=name,
        )
        if asset is not None:
            self._save_portfolio()
        return asset

    def remove_asset(self, symbol: str) -> bool:
        removed = self.assets.remove_asset(symbol)
        if removed:
            self._save_portfolio()
        return removed

    def update_prices(self, prices: Mapping[str, Any]) -> int:
        """
        Apply a price tick to holdings and positions

        Returns:
            Number of holdings plus positions repriced
        """
        updated = self.assets.update_prices(prices) + self.positions.reprice(prices)

        if updated:
            self._save_portfolio()

        return updated

    def get_assets(self) -> List[Asset]:
        return self.assets.get_assets()

    def get_asset(self, symbol: str) -> Optional[Asset]:
        return self.assets.get_asset(symbol)

    # ------------------------------------------------------------------
    # Positions

    def open_position(
        self,
        symbol: str,
        side: PositionSide,
        entry_price: Decimal,
        quantity: Decimal,
        leverage: Decimal = Decimal("1"),
        margin: Optional[Decimal] = None,
        exchange: Optional[str] = None,
        stop_loss: Optional[Decimal] = None,
        take_profit: Optional[Decimal] = None,
        liquidation_price: Optional[Decimal] = None
    ) -> Optional[Position]:
        """
        Open a leveraged position

        Margin defaults to notional / leverage when omitted.
        """
        if margin is None:
            try:
                margin = Decimal(str(entry_price)) * Decimal(str(quantity)) / Decimal(str(leverage))
            except ArithmeticError:
                logger.warning(f"Rejected position {symbol}: cannot derive margin")
                return None

        position = self.positions.open_position(
            symbol=symbol,
            side=side,
            entry_price=entry_price,
            quantity=quantity,
            leverage=leverage,
            margin=margin,
            exchange=exchange,
            stop_loss=stop_loss,
            take_profit=take_profit,
            liquidation_price=liquidation_price,
        )
        if position is not None:
            self._save_portfolio()
        return position

    def update_position_levels(
        self,
        position_id: str,
        stop_loss: Optional[Decimal] = None,
        take_profit: Optional[Decimal] = None
    ) -> Optional[Position]:
        position = self.positions.update_position_levels(position_id, stop_loss, take_profit)
        if position is not None:
            self._save_portfolio()
        return position

    def close_position(self, position_id: str, close_price: Decimal) -> Optional[TradeRecord]:
        trade = self.positions.close_position(position_id, close_price)
        if trade is not None:
            self._save_portfolio()
            self._save_trades()
        return trade

    def get_positions(self) -> List[Position]:
        return self.positions.get_positions()

    def get_position(self, position_id: str) -> Optional[Position]:
        return self.positions.get_position(position_id)

    # ------------------------------------------------------------------
    # Trades and cash

    def record_trade(
        self,
        symbol: str,
        side: TradeSide,
        price: Decimal,
        quantity: Decimal,
        fee: Decimal = Decimal("0"),
        timestamp: Optional[datetime] = None,
        exchange: Optional[str] = None,
        notes: Optional[str] = None,
        tags: Sequence[str] = ()
    ) -> Optional[TradeRecord]:
        trade = self.journal.record_trade(
            symbol=symbol,
            side=side,
            price=price,
            quantity=quantity,
            fee=fee,
            timestamp=timestamp,
            exchange=exchange,
            notes=notes,
            tags=tags,
        )
        if trade is not None:
            self._save_portfolio()
            self._save_trades()
        return trade

    def get_trade_history(
        self,
        symbol: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> List[TradeRecord]:
        return self.journal.get_trade_history(symbol, start_date, end_date, limit)

    def deposit(self, amount: Decimal) -> bool:
        ok = self.journal.deposit(amount)
        if ok:
            self._save_portfolio()
            self._save_trades()
        return ok

    def withdraw(self, amount: Decimal) -> bool:
        ok = self.journal.withdraw(amount)
        if ok:
            self._save_portfolio()
            self._save_trades()
        return ok

    def get_cash_balance(self) -> Decimal:
        return self.journal.cash_balance

    # ------------------------------------------------------------------
    # Snapshots and analytics

    def take_snapshot(self) -> Optional[Snapshot]:
        snapshot = self.snapshots.take_snapshot(self.assets.get_assets(), self.journal.cash_balance)
        if snapshot is not None:
            self._save_snapshots()
        return snapshot

    def get_value_history(self, days: int = 30) -> List[ValuePoint]:
        return self.snapshots.get_value_history(days)

    def get_snapshots(self) -> List[Snapshot]:
        return self.snapshots.get_snapshots()

    def calculate_metrics(self) -> PortfolioMetrics:
        return self.risk_engine.calculate_metrics(
            assets=self.assets.get_assets(),
            positions=self.positions.get_positions(),
            cash=self.journal.cash_balance,
            snapshots=self.snapshots.get_snapshots(),
            config=self.config.get_config(),
            now=self.clock.now(),
        )

    def check_rebalance(self) -> List[RebalanceDrift]:
        return self.risk_engine.rebalance_drift(self.assets.get_assets(), self.config.get_config())

    # ------------------------------------------------------------------
    # Config

    def get_config(self) -> PortfolioConfig:
        return self.config.get_config()

    def update_config(self, **updates: Any) -> Optional[PortfolioConfig]:
        config = self.config.update_config(**updates)
        if config is not None:
            self._save_config()
        return config

    # ------------------------------------------------------------------
    # Export / import

    def export_data(self) -> str:
        """Serialize the whole ledger as one JSON document"""

        document = ExportDocument(
            assets=self.assets.get_assets(),
            positions=self.positions.get_positions(),
            trades=self.journal.all_trades(),
            snapshots=self.snapshots.get_snapshots(),
            cash_balance=self.journal.cash_balance,
            config=self.config.get_config(),
            exported_at=self.clock.now(),
        )

        return document.model_dump_json(by_alias=True, indent=2)

    def import_data(self, data: Union[str, Dict[str, Any]]) -> bool:
        """
        Replace the whole ledger with an exported document

        Everything is validated before any state changes. On failure
        the current ledger is untouched.

        Args:
            data: JSON text or an already-parsed dict

        Returns:
            True if imported
        """
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError as e:
                logger.warning(f"Import rejected: unparseable JSON: {e}")
                return False

        if not isinstance(data, dict):
            logger.warning(f"Import rejected: expected an object, got {type(data).__name__}")
            return False

        missing = sorted(EXPORT_REQUIRED_KEYS - set(data))
        if missing:
            logger.warning(f"Import rejected: missing keys {missing}")
            return False

        version = data.get("version", SCHEMA_VERSION)
        if not isinstance(version, int) or version > SCHEMA_VERSION:
            logger.warning(f"Import rejected: unsupported version {version!r}")
            return False

        try:
            document = ExportDocument.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Import rejected: {e.error_count()} validation error(s)")
            return False

        # Build complete replacements first, then swap
        assets = AssetLedger(self.clock)
        journal = TradeJournal(assets, self.id_generator, self.clock)
        positions = PositionBook(journal, self.id_generator, self.clock)
        snapshots = SnapshotStore(self.clock, self.retention_days)
        config = ConfigStore(document.config or self.config.get_config())

        assets.restore(document.assets)
        journal.restore(document.trades, document.cash_balance)
        positions.restore(document.positions)
        snapshots.restore(document.snapshots)

        self.assets = assets
        self.journal = journal
        self.positions = positions
        self.snapshots = snapshots
        self.config = config

        self._save_portfolio()
        self._save_trades()
        self._save_snapshots()
        self._save_config()

        logger.info(
            f"Imported ledger: {len(document.assets)} assets, {len(document.positions)} positions, "
            f"{len(document.trades)} trades, {len(document.snapshots)} snapshots"
        )

        return True

    # ------------------------------------------------------------------
    # Persistence

    def _load(self) -> None:
        portfolio = self.persistence.load(PORTFOLIO_KEY)
        if isinstance(portfolio, PortfolioDocument):
            self.assets.restore(portfolio.assets)
            self.positions.restore(portfolio.positions)
            cash_balance = portfolio.cash_balance
        else:
            cash_balance = Decimal("0")

        trades = self.persistence.load(TRADES_KEY)
        self.journal.restore(trades.trades if isinstance(trades, TradesDocument) else [], cash_balance)

        snapshots = self.persistence.load(SNAPSHOTS_KEY)
        if isinstance(snapshots, SnapshotsDocument):
            self.snapshots.restore(snapshots.snapshots)

        config = self.persistence.load(CONFIG_KEY)
        if isinstance(config, ConfigDocument):
            self.config.restore(config.config)

    def _save_portfolio(self) -> None:
        self.persistence.save(
            PORTFOLIO_KEY,
            PortfolioDocument(
                assets=self.assets.get_assets(),
                positions=self.positions.get_positions(),
                cash_balance=self.journal.cash_balance,
            ),
        )

    def _save_trades(self) -> None:
        self.persistence.save(TRADES_KEY, TradesDocument(trades=self.journal.all_trades()))

    def _save_snapshots(self) -> None:
        self.persistence.save(SNAPSHOTS_KEY, SnapshotsDocument(snapshots=self.snapshots.get_snapshots()))

    def _save_config(self) -> None:
        self.persistence.save(CONFIG_KEY, ConfigDocument(config=self.config.get_config()))
