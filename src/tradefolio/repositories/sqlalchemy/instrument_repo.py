"""SQLAlchemy implementation of InstrumentRepository."""

from typing import Optional

from sqlalchemy.orm import Session

from tradefolio.domain.models import Instrument
from tradefolio.repositories.sqlalchemy.orm_models import InstrumentORM


class SqlAlchemyInstrumentRepository:
    """SQLAlchemy-backed instrument directory."""

    def __init__(self, db: Session):
        self._db = db

    def create(self, instrument: Instrument) -> Instrument:
        """Persist a new instrument."""
        orm_instrument = InstrumentORM(
            instrument_id=instrument.instrument_id,
            symbol=instrument.symbol,
            isin=instrument.isin,
            name=instrument.name,
            currency=instrument.currency,
        )
        self._db.add(orm_instrument)
        self._db.commit()
        self._db.refresh(orm_instrument)
        return self._to_domain(orm_instrument)

    def get_by_id(self, instrument_id: str) -> Optional[Instrument]:
        """Retrieve instrument by ID."""
        orm_instrument = self._db.query(InstrumentORM).filter(
            InstrumentORM.instrument_id == instrument_id
        ).first()
        return self._to_domain(orm_instrument) if orm_instrument else None

    def get_many(self, instrument_ids: list[str]) -> dict[str, Instrument]:
        """Retrieve several instruments; unknown ids are omitted."""
        if not instrument_ids:
            return {}
        rows = self._db.query(InstrumentORM).filter(
            InstrumentORM.instrument_id.in_(instrument_ids)
        ).all()
        return {row.instrument_id: self._to_domain(row) for row in rows}

    def list_ids(self, limit: Optional[int] = None) -> list[str]:
        """List known instrument ids, oldest entries first."""
        query = self._db.query(InstrumentORM.instrument_id).order_by(
            InstrumentORM.created_at, InstrumentORM.instrument_id
        )
        if limit is not None:
            query = query.limit(limit)
        return [row[0] for row in query.all()]

    @staticmethod
    def _to_domain(orm: InstrumentORM) -> Instrument:
        """Convert ORM model to domain model."""
        return Instrument(
            instrument_id=orm.instrument_id,
            symbol=orm.symbol,
            isin=orm.isin,
            name=orm.name,
            currency=orm.currency,
        )
