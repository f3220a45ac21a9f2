"""
Portfolio Service

Async front for a PortfolioManager:
- Serializes every command and read behind one asyncio.Lock
- Applies PricesUpdatedEvent ticks from the event bus
- Publishes what each successful command changed

SnapshotScheduler takes a snapshot every snapshot_interval seconds.
Stopping it never affects ledger correctness; a missed tick only
means a sparser value history.

Usage:
    service = PortfolioService(manager, event_bus)
    await service.start()

    scheduler = SnapshotScheduler(service, interval=86400.0)
    await scheduler.start()

    await service.deposit(Decimal("1000"))
    metrics = await service.calculate_metrics()
"""
import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Union
from loguru import logger

from .analytics.risk import PortfolioMetrics, RebalanceDrift
from .events.bus import IEventBus
from .events.portfolio import (
    CashMovementEvent,
    PositionClosedEvent,
    PositionOpenedEvent,
    PricesUpdatedEvent,
    SnapshotTakenEvent,
    TradeRecordedEvent,
)
from .models import Asset, PortfolioConfig, Position, PositionSide, Snapshot, TradeRecord, TradeSide
from .portfolio.manager import PortfolioManager
from .portfolio.snapshots import ValuePoint


class PortfolioService:
    """
    Single-writer async access to one portfolio

    Responsibilities:
    - Own the manager and its lock
    - Subscribe to price ticks
    - Publish outbound events after commands
    """

    def __init__(self, manager: PortfolioManager, event_bus: IEventBus):
        """
        Initialize Portfolio Service

        Args:
            manager: Portfolio to serve
            event_bus: Event bus for pub/sub
        """
        self.manager = manager
        self.event_bus = event_bus

        self._lock = asyncio.Lock()
        self._subscription_id: Optional[str] = None

        self.is_running = False

        logger.info("Initialized PortfolioService")

    async def start(self) -> None:
        """Start listening for price ticks"""
        if self.is_running:
            logger.warning("PortfolioService already running")
            return

        self.is_running = True
        self._subscription_id = await self.event_bus.subscribe("prices", self._handle_prices)

        logger.info("PortfolioService started")

    async def stop(self) -> None:
        """Stop listening for price ticks"""
        self.is_running = False

        if self._subscription_id:
            await self.event_bus.unsubscribe(self._subscription_id)
            self._subscription_id = None

        logger.info("PortfolioService stopped")

    async def _handle_prices(self, event: PricesUpdatedEvent) -> None:
        """Handle price tick"""
        updated = await self.update_prices(event.prices)

        logger.debug(f"Applied {len(event.prices)} prices, {updated} holdings/positions repriced")

    # ------------------------------------------------------------------
    # Commands

    async def update_prices(self, prices: Mapping[str, Any]) -> int:
        async with self._lock:
            return self.manager.update_prices(prices)

    async def add_asset(
        self,
        symbol: str,
        quantity: Decimal,
        avg_cost: Decimal,
        current_price: Optional[Decimal] = None,
        exchange: Optional[str] = None,
        name: Optional[str] = None
    ) -> Optional[Asset]:
        async with self._lock:
            return self.manager.add_asset(symbol, quantity, avg_cost, current_price, exchange, name)

    async def remove_asset(self, symbol: str) -> bool:
        async with self._lock:
            return self.manager.remove_asset(symbol)

    async def open_position(
        self,
        symbol: str,
        side: PositionSide,
        entry_price: Decimal,
        quantity: Decimal,
        leverage: Decimal = Decimal("1"),
        margin: Optional[Decimal] = None,
        **levels: Any
    ) -> Optional[Position]:
        async with self._lock:
            position = self.manager.open_position(
                symbol, side, entry_price, quantity, leverage, margin, **levels
            )

        if position is not None:
            await self.event_bus.publish(PositionOpenedEvent(
                symbol=position.symbol,
                position_id=position.id,
                side=position.side,
                entry_price=position.entry_price,
                quantity=position.quantity,
                leverage=position.leverage,
                margin=position.margin,
            ))

        return position

    async def update_position_levels(
        self,
        position_id: str,
        stop_loss: Optional[Decimal] = None,
        take_profit: Optional[Decimal] = None
    ) -> Optional[Position]:
        async with self._lock:
            return self.manager.update_position_levels(position_id, stop_loss, take_profit)

    async def close_position(self, position_id: str, close_price: Decimal) -> Optional[TradeRecord]:
        async with self._lock:
            position = self.manager.get_position(position_id)
            trade = self.manager.close_position(position_id, close_price)

        if trade is not None and position is not None:
            await self.event_bus.publish(PositionClosedEvent(
                symbol=position.symbol,
                position_id=position_id,
                close_price=trade.price,
                realized_pnl=position.pnl_at(trade.price),
                trade_id=trade.id,
            ))

        return trade

    async def record_trade(
        self,
        symbol: str,
        side: TradeSide,
        price: Decimal,
        quantity: Decimal,
        **details: Any
    ) -> Optional[TradeRecord]:
        async with self._lock:
            trade = self.manager.record_trade(symbol, side, price, quantity, **details)

        if trade is not None:
            await self.event_bus.publish(TradeRecordedEvent(
                symbol=trade.symbol,
                trade_id=trade.id,
                side=trade.side,
                price=trade.price,
                quantity=trade.quantity,
                total=trade.total,
            ))

        return trade

    async def deposit(self, amount: Decimal) -> bool:
        async with self._lock:
            ok = self.manager.deposit(amount)
            balance = self.manager.get_cash_balance()

        if ok:
            await self.event_bus.publish(CashMovementEvent(
                amount=Decimal(str(amount)),
                cash_balance=balance,
                notes="Deposit",
            ))

        return ok

    async def withdraw(self, amount: Decimal) -> bool:
        async with self._lock:
            ok = self.manager.withdraw(amount)
            balance = self.manager.get_cash_balance()

        if ok:
            await self.event_bus.publish(CashMovementEvent(
                amount=-Decimal(str(amount)),
                cash_balance=balance,
                notes="Withdrawal",
            ))

        return ok

    async def take_snapshot(self) -> Optional[Snapshot]:
        async with self._lock:
            snapshot = self.manager.take_snapshot()

        if snapshot is not None:
            await self.event_bus.publish(SnapshotTakenEvent(
                timestamp=snapshot.timestamp,
                total_value=snapshot.total_value,
                cash=snapshot.cash,
                holdings=len(snapshot.assets),
            ))

        return snapshot

    async def update_config(self, **updates: Any) -> Optional[PortfolioConfig]:
        async with self._lock:
            return self.manager.update_config(**updates)

    async def import_data(self, data: Union[str, Dict[str, Any]]) -> bool:
        async with self._lock:
            return self.manager.import_data(data)

    # ------------------------------------------------------------------
    # Reads

    async def get_assets(self) -> List[Asset]:
        async with self._lock:
            return self.manager.get_assets()

    async def get_positions(self) -> List[Position]:
        async with self._lock:
            return self.manager.get_positions()

    async def get_trade_history(
        self,
        symbol: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> List[TradeRecord]:
        async with self._lock:
            return self.manager.get_trade_history(symbol, start_date, end_date, limit)

    async def get_cash_balance(self) -> Decimal:
        async with self._lock:
            return self.manager.get_cash_balance()

    async def get_value_history(self, days: int = 30) -> List[ValuePoint]:
        async with self._lock:
            return self.manager.get_value_history(days)

    async def calculate_metrics(self) -> PortfolioMetrics:
        async with self._lock:
            return self.manager.calculate_metrics()

    async def check_rebalance(self) -> List[RebalanceDrift]:
        async with self._lock:
            return self.manager.check_rebalance()

    async def get_config(self) -> PortfolioConfig:
        async with self._lock:
            return self.manager.get_config()

    async def export_data(self) -> str:
        async with self._lock:
            return self.manager.export_data()


class SnapshotScheduler:
    """
    Periodic snapshot loop

    Calls PortfolioService.take_snapshot every interval seconds until
    stopped. Errors are logged and the loop keeps going.
    """

    def __init__(self, service: PortfolioService, interval: float = 86400.0):
        """
        Initialize Snapshot Scheduler

        Args:
            service: Service whose portfolio gets snapshotted
            interval: Seconds between snapshots
        """
        self.service = service
        self.interval = interval

        self.is_running = False
        self.snapshots_taken = 0
        self._task: Optional[asyncio.Task] = None

        logger.info(f"Initialized SnapshotScheduler: interval={interval}s")

    async def start(self) -> None:
        if self.is_running:
            logger.warning("SnapshotScheduler already running")
            return

        self.is_running = True
        self._task = asyncio.create_task(self._snapshot_loop())

        logger.info("SnapshotScheduler started")

    async def stop(self) -> None:
        self.is_running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info(f"SnapshotScheduler stopped | Snapshots taken: {self.snapshots_taken}")

    async def _snapshot_loop(self) -> None:
        while self.is_running:
            try:
                await asyncio.sleep(self.interval)

                if await self.service.take_snapshot() is not None:
                    self.snapshots_taken += 1

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.opt(exception=e).error(f"Error in snapshot loop: {e}")
