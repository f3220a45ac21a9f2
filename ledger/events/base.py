"""
Base event for the ledger bus

Every event is a frozen pydantic model describing something the ledger
already did (or, for prices, something it should apply).
"""
from datetime import datetime, timezone
from typing import Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field


class BaseEvent(BaseModel):
    """Frozen fact with an id, a type string for routing and a UTC time"""

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    event_type: str = Field(description="Routing key, e.g. 'prices' or 'trade_recorded'")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    symbol: Optional[str] = Field(default=None, description="Symbol the event concerns, if any")
