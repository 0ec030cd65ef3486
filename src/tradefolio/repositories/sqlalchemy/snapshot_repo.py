"""SQLAlchemy implementation of SnapshotRepository."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tradefolio.core.timezone import to_utc
from tradefolio.domain.models import PriceSnapshot
from tradefolio.domain.views import SnapshotStats
from tradefolio.repositories.sqlalchemy.orm_models import PriceSnapshotORM


class SqlAlchemySnapshotRepository:
    """SQLAlchemy-backed append-only snapshot store."""

    def __init__(self, db: Session):
        self._db = db

    def append(self, snapshot: PriceSnapshot) -> bool:
        """Append a snapshot; returns False on a duplicate (instrument, timestamp)."""
        snapshot_at = to_utc(snapshot.snapshot_at)
        exists = self._db.query(PriceSnapshotORM.snapshot_id).filter(
            PriceSnapshotORM.instrument_id == snapshot.instrument_id,
            PriceSnapshotORM.snapshot_at == snapshot_at,
        ).first()
        if exists:
            return False

        self._db.add(
            PriceSnapshotORM(
                instrument_id=snapshot.instrument_id,
                price=snapshot.price,
                currency=snapshot.currency,
                source=snapshot.source,
                snapshot_at=snapshot_at,
            )
        )
        try:
            self._db.commit()
        except IntegrityError:
            # Another writer inserted the same row between the check and the commit
            self._db.rollback()
            return False
        return True

    def latest(self, instrument_id: str) -> Optional[PriceSnapshot]:
        """Most recent snapshot of an instrument."""
        orm_snapshot = (
            self._db.query(PriceSnapshotORM)
            .filter(PriceSnapshotORM.instrument_id == instrument_id)
            .order_by(PriceSnapshotORM.snapshot_at.desc())
            .first()
        )
        return self._to_domain(orm_snapshot) if orm_snapshot else None

    def latest_times(self, instrument_ids: list[str]) -> dict[str, datetime]:
        """Timestamp of the most recent snapshot per instrument."""
        if not instrument_ids:
            return {}
        rows = (
            self._db.query(PriceSnapshotORM.instrument_id, func.max(PriceSnapshotORM.snapshot_at))
            .filter(PriceSnapshotORM.instrument_id.in_(instrument_ids))
            .group_by(PriceSnapshotORM.instrument_id)
            .all()
        )
        return {instrument_id: to_utc(latest) for instrument_id, latest in rows if latest}

    def list_range(
        self,
        instrument_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[PriceSnapshot]:
        """Snapshots of an instrument within [start, end], oldest first."""
        query = self._db.query(PriceSnapshotORM).filter(
            PriceSnapshotORM.instrument_id == instrument_id
        )
        if start is not None:
            query = query.filter(PriceSnapshotORM.snapshot_at >= to_utc(start))
        if end is not None:
            query = query.filter(PriceSnapshotORM.snapshot_at <= to_utc(end))
        query = query.order_by(PriceSnapshotORM.snapshot_at)
        return [self._to_domain(s) for s in query.all()]

    def stats(self) -> SnapshotStats:
        """Row count, instrument count and time span of the store."""
        total, instruments, oldest, newest = self._db.query(
            func.count(PriceSnapshotORM.snapshot_id),
            func.count(func.distinct(PriceSnapshotORM.instrument_id)),
            func.min(PriceSnapshotORM.snapshot_at),
            func.max(PriceSnapshotORM.snapshot_at),
        ).one()
        return SnapshotStats(
            total_snapshots=total or 0,
            instrument_count=instruments or 0,
            oldest_snapshot_at=to_utc(oldest) if oldest else None,
            newest_snapshot_at=to_utc(newest) if newest else None,
        )

    @staticmethod
    def _to_domain(orm: PriceSnapshotORM) -> PriceSnapshot:
        """Convert ORM model to domain model."""
        return PriceSnapshot(
            snapshot_id=orm.snapshot_id,
            instrument_id=orm.instrument_id,
            price=Decimal(str(orm.price)),
            currency=orm.currency,
            source=orm.source,
            snapshot_at=to_utc(orm.snapshot_at),
        )
