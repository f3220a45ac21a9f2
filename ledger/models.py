"""
Ledger data models

Pydantic models for everything the ledger stores:
- Asset: spot holding with weighted-average cost basis
- Position: leveraged long/short position
- TradeRecord: append-only journal entry
- Snapshot: immutable rollup of total portfolio value
- PortfolioConfig: named parameters for risk math and rebalancing

Python attributes are snake_case; serialized documents use the
dashboard's camelCase names (value, pnlPercent, avgCost, ...).
Derived figures are computed fields so callers can never set them.
"""
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, computed_field, model_validator
from pydantic.alias_generators import to_camel


HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    """Convert user input to Decimal without binary float noise"""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def finite_decimal(value: Any) -> Optional[Decimal]:
    """
    Convert user input to Decimal, or None if it is not a finite number

    NaN, Infinity and unparseable text all come back as None so callers
    can reject them like any other invalid amount.
    """
    try:
        result = to_decimal(value)
    except (ArithmeticError, ValueError, TypeError):
        return None
    return result if result.is_finite() else None


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC; aware ones are converted"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class LedgerModel(BaseModel):
    """Base model with camelCase document aliases"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class PositionSide(str, Enum):
    """Leveraged position direction"""
    LONG = "long"
    SHORT = "short"


class TradeSide(str, Enum):
    """Journal entry direction"""
    BUY = "buy"
    SELL = "sell"


class TrackingMode(str, Enum):
    """How holdings are sourced"""
    MANUAL = "manual"
    CONNECTED = "connected"
    HYBRID = "hybrid"


class Asset(LedgerModel):
    """
    Spot holding

    value/pnl/pnl_percent follow current_price automatically.
    allocation is written only by AssetLedger's global recompute.
    """
    symbol: str
    name: str = ""
    quantity: Decimal = Field(gt=0)
    avg_cost: Decimal = Field(gt=0)
    current_price: Decimal
    allocation: Decimal = Decimal("0")
    exchange: Optional[str] = None
    last_updated: UtcDatetime

    @model_validator(mode="after")
    def _default_name(self) -> "Asset":
        if not self.name:
            self.name = self.symbol
        return self

    @computed_field
    @property
    def value(self) -> Decimal:
        return self.quantity * self.current_price

    @computed_field
    @property
    def pnl(self) -> Decimal:
        return (self.current_price - self.avg_cost) * self.quantity

    @computed_field(alias="pnlPercent")
    @property
    def pnl_percent(self) -> Decimal:
        return (self.current_price - self.avg_cost) / self.avg_cost * HUNDRED

    @property
    def cost_basis(self) -> Decimal:
        return self.avg_cost * self.quantity


class Position(LedgerModel):
    """Leveraged position marked to the latest price"""
    id: str
    symbol: str
    side: PositionSide
    entry_price: Decimal = Field(gt=0)
    current_price: Decimal
    quantity: Decimal = Field(gt=0)
    leverage: Decimal = Field(ge=1)
    margin: Decimal = Field(gt=0)
    stop_loss: Optional[Decimal] = None
    take_profit: Optional[Decimal] = None
    liquidation_price: Optional[Decimal] = None
    opened_at: UtcDatetime
    exchange: Optional[str] = None

    def pnl_at(self, price: Decimal) -> Decimal:
        """Leveraged PnL if the position were marked at price"""
        if self.side == PositionSide.LONG:
            move = price - self.entry_price
        else:
            move = self.entry_price - price
        return move * self.quantity * self.leverage

    @computed_field(alias="unrealizedPnl")
    @property
    def unrealized_pnl(self) -> Decimal:
        return self.pnl_at(self.current_price)

    @computed_field(alias="unrealizedPnlPercent")
    @property
    def unrealized_pnl_percent(self) -> Decimal:
        return self.unrealized_pnl / self.margin * HUNDRED

    @property
    def equity(self) -> Decimal:
        """Margin plus mark-to-market PnL"""
        return self.margin + self.unrealized_pnl


class TradeRecord(LedgerModel):
    """Append-only journal entry. Corrections are new records."""

    model_config = ConfigDict(frozen=True)

    id: str
    symbol: str
    side: TradeSide
    price: Decimal
    quantity: Decimal
    total: Decimal
    fee: Decimal = Decimal("0")
    timestamp: UtcDatetime
    exchange: Optional[str] = None
    notes: Optional[str] = None
    tags: tuple[str, ...] = ()


class SnapshotHolding(LedgerModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    value: Decimal


class Snapshot(LedgerModel):
    """Immutable rollup of portfolio value at one instant"""

    model_config = ConfigDict(frozen=True)

    timestamp: UtcDatetime
    total_value: Decimal
    cash: Decimal
    assets: tuple[SnapshotHolding, ...] = ()


class PortfolioConfig(LedgerModel):
    """Named parameters read by the risk engine and the dashboard"""

    model_config = ConfigDict(allow_inf_nan=False)

    base_currency: str = "USD"
    tracking_mode: TrackingMode = TrackingMode.MANUAL
    risk_free_rate: float = 0.05
    benchmark_symbol: str = "BTCUSD"
    rebalance_threshold: float = Field(default=5.0, ge=0)
    target_allocations: Optional[dict[str, float]] = None
