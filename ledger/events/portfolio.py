"""
Portfolio events

Inbound:
- PricesUpdated: a batch of prices from the dashboard feed

Outbound, published after successful commands:
- PositionOpened / PositionClosed
- TradeRecorded
- CashMovement (deposit, withdrawal)
- SnapshotTaken
"""
from decimal import Decimal
from typing import Literal, Optional

from pydantic import Field

from ..models import PositionSide, TradeSide
from .base import BaseEvent


class PricesUpdatedEvent(BaseEvent):
    """Symbol -> price map to apply to holdings and positions"""
    event_type: Literal["prices"] = "prices"
    prices: dict[str, Decimal] = Field(default_factory=dict)


class PositionOpenedEvent(BaseEvent):
    event_type: Literal["position_opened"] = "position_opened"
    position_id: str
    symbol: str
    side: PositionSide
    entry_price: Decimal
    quantity: Decimal
    leverage: Decimal
    margin: Decimal


class PositionClosedEvent(BaseEvent):
    event_type: Literal["position_closed"] = "position_closed"
    position_id: str
    symbol: str
    close_price: Decimal
    realized_pnl: Decimal
    trade_id: str


class TradeRecordedEvent(BaseEvent):
    event_type: Literal["trade_recorded"] = "trade_recorded"
    trade_id: str
    symbol: str
    side: TradeSide
    price: Decimal
    quantity: Decimal
    total: Decimal


class CashMovementEvent(BaseEvent):
    """Deposit (positive amount) or withdrawal (negative amount)"""
    event_type: Literal["cash_movement"] = "cash_movement"
    amount: Decimal
    cash_balance: Decimal
    notes: Optional[str] = None


class SnapshotTakenEvent(BaseEvent):
    event_type: Literal["snapshot_taken"] = "snapshot_taken"
    total_value: Decimal
    cash: Decimal
    holdings: int
