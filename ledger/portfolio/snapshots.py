"""
Snapshot Store

Time-ordered, immutable rollups of total portfolio value. The series
is the only input the risk engine reads from history.

Invariants:
- Timestamps strictly ascending
- Entries older than the retention window are pruned on every insert
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional
from loguru import logger

from ..ids import Clock, SystemClock
from ..models import Asset, Snapshot, SnapshotHolding, to_decimal


DEFAULT_RETENTION_DAYS = 365


@dataclass(frozen=True)
class ValuePoint:
    """One point of the value history"""
    timestamp: datetime
    value: Decimal


class SnapshotStore:
    """Append-only snapshot series with retention"""

    def __init__(
        self,
        clock: Optional[Clock] = None,
        retention_days: int = DEFAULT_RETENTION_DAYS
    ):
        self.clock = clock or SystemClock()
        self.retention = timedelta(days=retention_days)

        self._snapshots: List[Snapshot] = []

        logger.debug(f"Initialized SnapshotStore: retention={retention_days}d")

    def take_snapshot(self, assets: Iterable[Asset], cash: Decimal) -> Optional[Snapshot]:
        """
        Record total value now

        total_value is spot holdings plus cash. Leveraged positions
        are not part of the historical series.

        Returns:
            The snapshot, or None if its timestamp is not after the last one
        """
        now = self.clock.now()

        if self._snapshots and now <= self._snapshots[-1].timestamp:
            logger.warning(
                f"Rejected snapshot at {now.isoformat()}: "
                f"not after {self._snapshots[-1].timestamp.isoformat()}"
            )
            return None

        holdings = tuple(SnapshotHolding(symbol=a.symbol, value=a.value) for a in assets)
        cash = to_decimal(cash)

        snapshot = Snapshot(
            timestamp=now,
            total_value=sum((h.value for h in holdings), Decimal("0")) + cash,
            cash=cash,
            assets=holdings,
        )

        self._snapshots.append(snapshot)
        self._prune(now)

        logger.info(f"Snapshot taken: total_value={snapshot.total_value} ({len(self._snapshots)} kept)")

        return snapshot

    def get_value_history(self, days: int = 30) -> List[ValuePoint]:
        """Values with timestamp in [now - days, now], ascending"""

        now = self.clock.now()
        cutoff = now - timedelta(days=days)

        return [
            ValuePoint(timestamp=s.timestamp, value=s.total_value)
            for s in self._snapshots
            if cutoff <= s.timestamp <= now
        ]

    def find_at_or_before(self, cutoff: datetime) -> Optional[Snapshot]:
        """Most recent snapshot taken at or before cutoff"""

        for snapshot in reversed(self._snapshots):
            if snapshot.timestamp <= cutoff:
                return snapshot
        return None

    def get_snapshots(self) -> List[Snapshot]:
        return [s.model_copy(deep=True) for s in self._snapshots]

    def values(self) -> List[Decimal]:
        """Total values in chronological order"""
        return [s.total_value for s in self._snapshots]

    def __len__(self) -> int:
        return len(self._snapshots)

    def restore(self, snapshots: List[Snapshot]) -> None:
        """
        Replace the series (used by load and import)

        Input is sorted; entries that do not advance the clock are dropped.
        Retention is not applied here so an import reproduces its history.
        """
        ordered: List[Snapshot] = []

        for snapshot in sorted(snapshots, key=lambda s: s.timestamp):
            if ordered and snapshot.timestamp <= ordered[-1].timestamp:
                logger.warning(f"Dropping duplicate snapshot at {snapshot.timestamp.isoformat()}")
                continue
            ordered.append(snapshot)

        self._snapshots = ordered

    def _prune(self, now: datetime) -> None:
        cutoff = now - self.retention
        before = len(self._snapshots)

        self._snapshots = [s for s in self._snapshots if s.timestamp > cutoff]

        pruned = before - len(self._snapshots)
        if pruned:
            logger.debug(f"Pruned {pruned} snapshots older than {cutoff.isoformat()}")
