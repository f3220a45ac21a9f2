"""
Asset Ledger

Tracks spot holdings with weighted-average cost basis:
- Adding to a holding re-averages its cost
- Reducing a holding clamps at zero and deletes it
- Allocation percentages are recomputed across all holdings
  after every mutation (once per batch for price updates)

Negative holdings are never represented.
"""
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Mapping, Optional
from loguru import logger

from ..ids import Clock, SystemClock
from ..models import Asset, HUNDRED, finite_decimal, to_decimal


ZERO = Decimal("0")


class AssetLedger:
    """
    Spot holdings keyed by symbol

    All readers get deep copies; the internal Asset objects are
    never handed out.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()
        self._assets: Dict[str, Asset] = {}

        logger.debug("Initialized AssetLedger")

    def add_asset(
        self,
        symbol: str,
        quantity: Decimal,
        avg_cost: Decimal,
        current_price: Decimal,
        exchange: Optional[str] = None,
        name: Optional[str] = None,
        timestamp: Optional[datetime] = None
    ) -> Optional[Asset]:
        """
        Add to (or create) a holding

        Args:
            symbol: Asset symbol
            quantity: Units acquired, must be positive
            avg_cost: Acquisition price per unit, must be positive
            current_price: Latest market price
            exchange: Optional exchange tag
            name: Display name (defaults to symbol)
            timestamp: Update time (defaults to now)

        Returns:
            Copy of the resulting holding, or None if rejected
        """
        quantity = finite_decimal(quantity)
        avg_cost = finite_decimal(avg_cost)
        current_price = finite_decimal(current_price)

        if quantity is None or avg_cost is None or current_price is None:
            logger.warning(f"Rejected add_asset {symbol}: amounts must be finite numbers")
            return None

        if quantity <= 0 or avg_cost <= 0:
            logger.warning(
                f"Rejected add_asset {symbol}: quantity={quantity} avg_cost={avg_cost} must be positive"
            )
            return None

        now = timestamp or self.clock.now()
        existing = self._assets.get(symbol)

        if existing:
            total_quantity = existing.quantity + quantity
            total_cost = (existing.quantity * existing.avg_cost) + (quantity * avg_cost)

            existing.quantity = total_quantity
            existing.avg_cost = total_cost / total_quantity
            existing.current_price = current_price
            existing.last_updated = now
            if exchange and not existing.exchange:
                existing.exchange = exchange

            logger.debug(
                f"Merged into {symbol}: qty={existing.quantity} avg_cost={existing.avg_cost}"
            )
        else:
            self._assets[symbol] = Asset(
                symbol=symbol,
                name=name or symbol,
                quantity=quantity,
                avg_cost=avg_cost,
                current_price=current_price,
                exchange=exchange,
                last_updated=now,
            )
            logger.info(f"New holding: {symbol} | {quantity} @ {avg_cost}")

        self._recalculate_allocations()

        return self._assets[symbol].model_copy(deep=True)

    def remove_asset(self, symbol: str) -> bool:
        """Delete a holding entirely. Returns whether it existed."""

        if symbol not in self._assets:
            return False

        del self._assets[symbol]
        self._recalculate_allocations()

        logger.info(f"Removed holding: {symbol}")
        return True

    def reduce(self, symbol: str, quantity: Decimal) -> Optional[Asset]:
        """
        Reduce a holding after a sell

        Quantity is clamped at zero and the holding is deleted once
        nothing is left.

        Returns:
            Copy of the remaining holding, or None if absent/liquidated
        """
        asset = self._assets.get(symbol)
        if asset is None:
            logger.debug(f"Sell of {symbol} with no holding, nothing to reduce")
            return None

        remaining = asset.quantity - to_decimal(quantity)

        if remaining <= 0:
            del self._assets[symbol]
            self._recalculate_allocations()
            logger.info(f"Holding liquidated: {symbol}")
            return None

        asset.quantity = remaining
        asset.last_updated = self.clock.now()
        self._recalculate_allocations()

        return asset.model_copy(deep=True)

    def update_prices(self, prices: Mapping[str, Decimal]) -> int:
        """
        Reprice every held symbol present in prices

        Allocation is recomputed once after the whole batch. Prices
        that are not finite numbers are skipped.

        Returns:
            Number of holdings repriced
        """
        now = self.clock.now()
        updated = 0

        for symbol, price in prices.items():
            asset = self._assets.get(symbol)
            if asset is None:
                continue

            price = finite_decimal(price)
            if price is None:
                logger.warning(f"Skipped price for {symbol}: not a finite number")
                continue

            asset.current_price = price
            asset.last_updated = now
            updated += 1

        if updated:
            self._recalculate_allocations()

        return updated

    def get_asset(self, symbol: str) -> Optional[Asset]:
        asset = self._assets.get(symbol)
        return asset.model_copy(deep=True) if asset else None

    def get_assets(self) -> List[Asset]:
        return [asset.model_copy(deep=True) for asset in self._assets.values()]

    def has_asset(self, symbol: str) -> bool:
        return symbol in self._assets

    def total_value(self) -> Decimal:
        return sum((a.value for a in self._assets.values()), ZERO)

    def restore(self, assets: List[Asset]) -> None:
        """Replace all holdings (used by load and import)"""
        self._assets = {a.symbol: a.model_copy(deep=True) for a in assets}
        self._recalculate_allocations()

    def _recalculate_allocations(self) -> None:
        total_value = self.total_value()

        for asset in self._assets.values():
            asset.allocation = (asset.value / total_value) * HUNDRED if total_value > 0 else ZERO
