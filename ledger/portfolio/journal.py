"""
Trade Journal

Append-only record of buy/sell/deposit/withdraw events and the
cash balance they imply.

Rules:
- Records are never mutated or removed; corrections are new records
- Spot buys fold into the AssetLedger at the trade price
- Spot sells reduce the matching holding (clamped at zero)
- Spot trades do not move cash; only deposit, withdraw and
  position closes (via credit) do
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Sequence
from loguru import logger

from ..ids import Clock, IdGenerator, SystemClock, UUIDGenerator
from ..models import TradeRecord, TradeSide, as_utc, finite_decimal, to_decimal
from .assets import AssetLedger


CASH_SYMBOL = "CASH"


class TradeJournal:
    """Trade history plus cash balance"""

    def __init__(
        self,
        asset_ledger: AssetLedger,
        id_generator: Optional[IdGenerator] = None,
        clock: Optional[Clock] = None
    ):
        """
        Initialize the journal

        Args:
            asset_ledger: Ledger that buy/sell records fold into
            id_generator: Source of record ids
            clock: Source of record timestamps
        """
        self.asset_ledger = asset_ledger
        self.id_generator = id_generator or UUIDGenerator()
        self.clock = clock or SystemClock()

        self._trades: List[TradeRecord] = []
        self._cash_balance = Decimal("0")

        logger.debug("Initialized TradeJournal")

    @property
    def cash_balance(self) -> Decimal:
        return self._cash_balance

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
        """
        Record a spot trade and fold it into the asset ledger

        Args:
            symbol: Traded symbol
            side: Buy or sell
            price: Execution price, must be positive
            quantity: Units traded, must be positive
            fee: Fee paid (journaled only)
            timestamp: Execution time (defaults to now)
            exchange: Optional exchange tag
            notes: Free-form note
            tags: Free-form tags

        Returns:
            The new record, or None if rejected
        """
        side = TradeSide(side)
        price = finite_decimal(price)
        quantity = finite_decimal(quantity)
        fee = finite_decimal(fee)

        if price is None or quantity is None or fee is None:
            logger.warning(f"Rejected trade {symbol}: amounts must be finite numbers")
            return None

        if price <= 0 or quantity <= 0:
            logger.warning(
                f"Rejected trade {symbol}: price={price} quantity={quantity} must be positive"
            )
            return None

        record = self._append(
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

        if side == TradeSide.BUY:
            self.asset_ledger.add_asset(
                symbol=symbol,
                quantity=quantity,
                avg_cost=price,
                current_price=price,
                exchange=exchange,
                timestamp=record.timestamp,
            )
        else:
            self.asset_ledger.reduce(symbol, quantity)

        logger.info(f"Trade recorded: {side.value} {quantity} {symbol} @ {price}")

        return record

    def record_close(
        self,
        symbol: str,
        side: TradeSide,
        price: Decimal,
        quantity: Decimal,
        exchange: Optional[str],
        notes: str
    ) -> TradeRecord:
        """Journal a leveraged position close (no asset folding)"""
        return self._append(
            symbol=symbol,
            side=side,
            price=price,
            quantity=quantity,
            exchange=exchange,
            notes=notes,
        )

    def deposit(self, amount: Decimal) -> bool:
        """Add cash and journal a synthetic CASH buy"""

        amount = finite_decimal(amount)
        if amount is None or amount <= 0:
            logger.warning(f"Rejected deposit: amount={amount} must be a positive number")
            return False

        self._append(
            symbol=CASH_SYMBOL,
            side=TradeSide.BUY,
            price=Decimal("1"),
            quantity=amount,
            notes="Deposit",
        )
        self._cash_balance += amount

        logger.info(f"Deposit: {amount} | cash={self._cash_balance}")
        return True

    def withdraw(self, amount: Decimal) -> bool:
        """Remove cash if the balance covers it"""

        amount = finite_decimal(amount)
        if amount is None or amount <= 0:
            logger.warning(f"Rejected withdrawal: amount={amount} must be a positive number")
            return False

        if amount > self._cash_balance:
            logger.warning(
                f"Rejected withdrawal: amount={amount} exceeds cash={self._cash_balance}"
            )
            return False

        self._append(
            symbol=CASH_SYMBOL,
            side=TradeSide.SELL,
            price=Decimal("1"),
            quantity=amount,
            notes="Withdrawal",
        )
        self._cash_balance -= amount

        logger.info(f"Withdrawal: {amount} | cash={self._cash_balance}")
        return True

    def credit(self, amount: Decimal) -> None:
        """Move cash without a journal entry (position settlement)"""
        self._cash_balance += to_decimal(amount)

    def get_trade_history(
        self,
        symbol: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> List[TradeRecord]:
        """
        Get trade history

        All provided filters must match. Newest first.

        Args:
            symbol: Filter by symbol
            start_date: Earliest timestamp (inclusive)
            end_date: Latest timestamp (inclusive)
            limit: Max records to return

        Returns:
            List of records
        """
        trades = list(self._trades)

        if symbol:
            trades = [t for t in trades if t.symbol == symbol]
        if start_date:
            start_date = as_utc(start_date)
            trades = [t for t in trades if t.timestamp >= start_date]
        if end_date:
            end_date = as_utc(end_date)
            trades = [t for t in trades if t.timestamp <= end_date]

        # Most recent first; stable so same-instant records keep reverse insertion order
        trades = sorted(reversed(trades), key=lambda t: t.timestamp, reverse=True)

        if limit is not None:
            trades = trades[:max(limit, 0)]

        return [t.model_copy(deep=True) for t in trades]

    def restore(self, trades: List[TradeRecord], cash_balance: Decimal) -> None:
        """Replace the journal and cash balance (used by load and import)"""
        self._trades = list(trades)
        self._cash_balance = to_decimal(cash_balance)

    def all_trades(self) -> List[TradeRecord]:
        """Insertion-ordered copy, for persistence"""
        return [t.model_copy(deep=True) for t in self._trades]

    def _append(
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
    ) -> TradeRecord:
        record = TradeRecord(
            id=self.id_generator.new_id(),
            symbol=symbol,
            side=side,
            price=price,
            quantity=quantity,
            total=price * quantity,
            fee=fee,
            timestamp=timestamp or self.clock.now(),
            exchange=exchange,
            notes=notes,
            tags=tuple(tags),
        )

        self._trades.append(record)

        return record
