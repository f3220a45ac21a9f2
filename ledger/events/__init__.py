"""
Ledger Event System

Typed, immutable events on an in-process bus. The dashboard feeds
prices in; the service announces what each command changed.

Usage:
    from ledger.events import InMemoryEventBus, PricesUpdatedEvent

    bus = InMemoryEventBus()

    async def on_trade(event):
        print(f"Trade: {event.side} {event.quantity} {event.symbol}")

    await bus.subscribe("trade_recorded", on_trade)
    await bus.publish(PricesUpdatedEvent(prices={"BTCUSD": Decimal("60000")}))
"""

from .base import BaseEvent
from .bus import IEventBus, InMemoryEventBus
from .portfolio import (
    PricesUpdatedEvent,
    PositionOpenedEvent,
    PositionClosedEvent,
    TradeRecordedEvent,
    CashMovementEvent,
    SnapshotTakenEvent,
)

__all__ = [
    "BaseEvent",
    "IEventBus",
    "InMemoryEventBus",
    "PricesUpdatedEvent",
    "PositionOpenedEvent",
    "PositionClosedEvent",
    "TradeRecordedEvent",
    "CashMovementEvent",
    "SnapshotTakenEvent",
]
