"""
Position Book

Tracks leveraged long/short positions:
- Opening with margin, leverage and optional stop/target levels
- Marking to market on every price tick
- Closing: realized PnL is journaled and margin + PnL credited to cash

Closed positions are deleted, not archived. The TradeRecord written
on close is the durable evidence.
"""
from decimal import Decimal
from typing import Dict, List, Mapping, Optional
from loguru import logger

from ..ids import Clock, IdGenerator, SystemClock, UUIDGenerator
from ..models import Position, PositionSide, TradeRecord, TradeSide, finite_decimal
from .journal import TradeJournal


MAX_ID_ATTEMPTS = 100


class PositionBook:
    """
    Open leveraged positions keyed by id

    Responsibilities:
    - Validate and open positions
    - Update stop-loss / take-profit levels
    - Reprice on ticks
    - Settle closes through the trade journal
    """

    def __init__(
        self,
        journal: TradeJournal,
        id_generator: Optional[IdGenerator] = None,
        clock: Optional[Clock] = None
    ):
        self.journal = journal
        self.id_generator = id_generator or UUIDGenerator()
        self.clock = clock or SystemClock()

        self._positions: Dict[str, Position] = {}

        logger.debug("Initialized PositionBook")

    def open_position(
        self,
        symbol: str,
        side: PositionSide,
        entry_price: Decimal,
        quantity: Decimal,
        leverage: Decimal,
        margin: Decimal,
        exchange: Optional[str] = None,
        stop_loss: Optional[Decimal] = None,
        take_profit: Optional[Decimal] = None,
        liquidation_price: Optional[Decimal] = None
    ) -> Optional[Position]:
        """
        Open a new position

        Args:
            symbol: Position symbol
            side: Long or short
            entry_price: Fill price, must be positive
            quantity: Position size, must be positive
            leverage: Multiplier, at least 1
            margin: Capital committed, must be positive
            exchange: Optional exchange tag
            stop_loss: Optional stop level
            take_profit: Optional target level
            liquidation_price: Optional exchange-reported liquidation level

        Returns:
            Copy of the new position, or None if rejected
        """
        side = PositionSide(side)
        entry_price = finite_decimal(entry_price)
        quantity = finite_decimal(quantity)
        leverage = finite_decimal(leverage)
        margin = finite_decimal(margin)
        levels = (stop_loss, take_profit, liquidation_price)

        if None in (entry_price, quantity, leverage, margin) or not all(map(_valid_level, levels)):
            logger.warning(f"Rejected position {symbol}: amounts must be finite numbers")
            return None

        if quantity <= 0 or leverage < 1 or margin <= 0 or entry_price <= 0:
            logger.warning(
                f"Rejected position {symbol}: entry={entry_price} qty={quantity} "
                f"leverage={leverage} margin={margin}"
            )
            return None

        position_id = self._unused_id()
        if position_id is None:
            logger.error(f"Rejected position {symbol}: no unused position id available")
            return None

        position = Position(
            id=position_id,
            symbol=symbol,
            side=side,
            entry_price=entry_price,
            current_price=entry_price,
            quantity=quantity,
            leverage=leverage,
            margin=margin,
            stop_loss=_optional_decimal(stop_loss),
            take_profit=_optional_decimal(take_profit),
            liquidation_price=_optional_decimal(liquidation_price),
            opened_at=self.clock.now(),
            exchange=exchange,
        )

        self._positions[position.id] = position

        logger.info(
            f"Position opened: {position.id} | {side.value} {quantity} {symbol} "
            f"@ {entry_price} x{leverage}"
        )

        return position.model_copy(deep=True)

    def update_position_levels(
        self,
        position_id: str,
        stop_loss: Optional[Decimal] = None,
        take_profit: Optional[Decimal] = None
    ) -> Optional[Position]:
        """Set only the levels provided. None if the id is unknown."""

        position = self._positions.get(position_id)
        if position is None:
            logger.warning(f"Position not found: {position_id}")
            return None

        if not (_valid_level(stop_loss) and _valid_level(take_profit)):
            logger.warning(f"Rejected levels for {position_id}: must be finite numbers")
            return None

        if stop_loss is not None:
            position.stop_loss = finite_decimal(stop_loss)
        if take_profit is not None:
            position.take_profit = finite_decimal(take_profit)

        return position.model_copy(deep=True)

    def close_position(self, position_id: str, close_price: Decimal) -> Optional[TradeRecord]:
        """
        Close a position at close_price

        Journals an opposite-side trade carrying the realized PnL,
        credits margin + PnL to cash and deletes the position.

        Returns:
            The closing TradeRecord, or None if the id is unknown
            or the price is not a finite number
        """
        position = self._positions.get(position_id)
        if position is None:
            logger.warning(f"Position not found: {position_id}")
            return None

        close_price = finite_decimal(close_price)
        if close_price is None:
            logger.warning(f"Rejected close of {position_id}: close price must be a finite number")
            return None

        pnl = position.pnl_at(close_price)

        closing_side = TradeSide.SELL if position.side == PositionSide.LONG else TradeSide.BUY

        trade = self.journal.record_close(
            symbol=position.symbol,
            side=closing_side,
            price=close_price,
            quantity=position.quantity,
            exchange=position.exchange,
            notes=f"Closed {position.side.value} position. PnL: {pnl:.2f}",
        )

        del self._positions[position_id]
        self.journal.credit(position.margin + pnl)

        logger.info(f"Position closed: {position_id} | {position.symbol} | P&L: {pnl}")

        return trade

    def reprice(self, prices: Mapping[str, Decimal]) -> int:
        """
        Mark every position whose symbol is in prices

        Prices that are not finite numbers are skipped.

        Returns:
            Number of positions repriced
        """
        updated = 0

        for position in self._positions.values():
            if position.symbol not in prices:
                continue

            price = finite_decimal(prices[position.symbol])
            if price is None:
                logger.warning(f"Skipped price for position {position.id}: not a finite number")
                continue

            position.current_price = price
            updated += 1

        return updated

    def get_position(self, position_id: str) -> Optional[Position]:
        position = self._positions.get(position_id)
        return position.model_copy(deep=True) if position else None

    def get_positions(self) -> List[Position]:
        return [p.model_copy(deep=True) for p in self._positions.values()]

    def restore(self, positions: List[Position]) -> None:
        self._positions = {p.id: p.model_copy(deep=True) for p in positions}

    def _unused_id(self) -> Optional[str]:
        # Sequential generators restart after a reload or import
        for _ in range(MAX_ID_ATTEMPTS):
            position_id = self.id_generator.new_id()
            if position_id not in self._positions:
                return position_id
            logger.warning(f"Position id {position_id} already in use, drawing another")
        return None


def _valid_level(value: Optional[Decimal]) -> bool:
    return value is None or finite_decimal(value) is not None


def _optional_decimal(value: Optional[Decimal]) -> Optional[Decimal]:
    return finite_decimal(value) if value is not None else None
