"""Snapshot history queries and job entry points."""

from datetime import datetime
from typing import Optional

from tradefolio.core.exceptions import NotFoundError, ValidationError
from tradefolio.core.timezone import to_utc
from tradefolio.domain.models import PriceSnapshot
from tradefolio.domain.views import CronJobMetrics, SnapshotStats
from tradefolio.repositories.protocols import InstrumentRepository, SnapshotRepository
from tradefolio.services.snapshot_job import SnapshotJob


class SnapshotService:
    """Read access to stored price history plus scheduled and manual snapshot runs."""

    def __init__(
        self,
        snapshot_repo: SnapshotRepository,
        instrument_repo: InstrumentRepository,
        job: SnapshotJob,
    ):
        self._snapshot_repo = snapshot_repo
        self._instrument_repo = instrument_repo
        self._job = job

    async def run_job(self) -> CronJobMetrics:
        return await self._job.run()

    async def save_snapshots_for_instruments(self, instrument_ids: list[str]) -> CronJobMetrics:
        if not instrument_ids:
            raise ValidationError("At least one instrument id is required")
        return await self._job.save_snapshots_for_instruments(instrument_ids)

    def history(
        self,
        instrument_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[PriceSnapshot]:
        """
        Stored snapshots of one instrument, oldest first.

        Raises:
            NotFoundError: unknown instrument.
            ValidationError: ``start`` is after ``end``.
        """
        if start is not None and end is not None and to_utc(start) > to_utc(end):
            raise ValidationError("start must not be after end")
        if self._instrument_repo.get_by_id(instrument_id) is None:
            raise NotFoundError("Instrument", instrument_id)
        return self._snapshot_repo.list_range(instrument_id, start, end)

    def stats(self) -> SnapshotStats:
        return self._snapshot_repo.stats()
