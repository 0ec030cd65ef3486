"""Durable price snapshot store protocol."""

from datetime import datetime
from typing import Protocol, Optional

from tradefolio.domain.models import PriceSnapshot
from tradefolio.domain.views import SnapshotStats


class SnapshotRepository(Protocol):
    """Interface for the append-only snapshot store."""

    def append(self, snapshot: PriceSnapshot) -> bool:
        """
        Append a snapshot.

        Returns False when a snapshot for the same instrument and timestamp
        already exists; existing rows are never updated.
        """
        ...

    def latest(self, instrument_id: str) -> Optional[PriceSnapshot]:
        """Most recent snapshot of an instrument."""
        ...

    def latest_times(self, instrument_ids: list[str]) -> dict[str, datetime]:
        """Timestamp of the most recent snapshot per instrument."""
        ...

    def list_range(
        self,
        instrument_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[PriceSnapshot]:
        """Snapshots of an instrument within [start, end], oldest first."""
        ...

    def stats(self) -> SnapshotStats:
        """Row count, instrument count and time span of the store."""
        ...
