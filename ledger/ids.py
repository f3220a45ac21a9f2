"""
Injected identity and time capabilities

Components never call uuid or datetime.now directly so tests can
supply deterministic ids and a controllable clock.
"""
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional


class IdGenerator(ABC):
    """Produces opaque unique identifiers"""

    @abstractmethod
    def new_id(self) -> str:
        pass


class UUIDGenerator(IdGenerator):
    """Random UUID4 hex ids"""

    def new_id(self) -> str:
        return uuid.uuid4().hex


class SequentialIdGenerator(IdGenerator):
    """Deterministic ids: '<prefix>-1', '<prefix>-2', ..."""

    def __init__(self, prefix: str = "id"):
        self.prefix = prefix
        self._counter = 0

    def new_id(self) -> str:
        self._counter += 1
        return f"{self.prefix}-{self._counter}"


class Clock(ABC):
    """Source of the current UTC time"""

    @abstractmethod
    def now(self) -> datetime:
        pass


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FrozenClock(Clock):
    """Clock that only moves when told to"""

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, **kwargs: float) -> datetime:
        """Move forward by timedelta kwargs (days=1, hours=6, ...)"""
        self._now = self._now + timedelta(**kwargs)
        return self._now
