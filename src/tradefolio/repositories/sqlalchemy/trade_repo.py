"""SQLAlchemy implementation of TradeRepository."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from tradefolio.core.exceptions import NotFoundError
from tradefolio.core.timezone import now_utc, to_utc
from tradefolio.domain.models import Trade, TradeRevision, TradeSide
from tradefolio.repositories.sqlalchemy.orm_models import TradeORM, TradeRevisionORM

# Half of the smallest ledger quantity step; sums above this count as open
_OPEN_QUANTITY_EPSILON = Decimal("0.000000005")


class SqlAlchemyTradeRepository:
    """SQLAlchemy-backed trade ledger repository."""

    def __init__(self, db: Session):
        self._db = db

    def create(self, trade: Trade) -> Trade:
        """Persist a new trade."""
        orm_trade = self._to_orm(trade)
        self._db.add(orm_trade)
        self._db.commit()
        self._db.refresh(orm_trade)
        return self._to_domain(orm_trade)

    def get_by_id(self, trade_id: str) -> Optional[Trade]:
        """Retrieve trade by ID."""
        orm_trade = self._db.query(TradeORM).filter(
            TradeORM.trade_id == trade_id
        ).first()
        return self._to_domain(orm_trade) if orm_trade else None

    def delete(self, trade_id: str) -> None:
        """Remove a trade row."""
        orm_trade = self._db.query(TradeORM).filter(
            TradeORM.trade_id == trade_id
        ).first()
        if not orm_trade:
            raise NotFoundError("Trade", trade_id)
        self._db.delete(orm_trade)
        self._db.commit()

    def list_by_portfolio(
        self,
        portfolio_id: str,
        instrument_id: Optional[str] = None,
    ) -> list[Trade]:
        """List trades of a portfolio, ordered by execution time."""
        query = self._db.query(TradeORM).filter(TradeORM.portfolio_id == portfolio_id)
        if instrument_id:
            query = query.filter(TradeORM.instrument_id == instrument_id)
        query = query.order_by(TradeORM.executed_at, TradeORM.created_at)
        return [self._to_domain(t) for t in query.all()]

    def list_open_instrument_ids(self) -> list[str]:
        """Instruments with a positive net quantity in any portfolio."""
        signed_quantity = case(
            (TradeORM.side == TradeSide.BUY, TradeORM.quantity),
            else_=-TradeORM.quantity,
        )
        rows = (
            self._db.query(TradeORM.instrument_id)
            .group_by(TradeORM.portfolio_id, TradeORM.instrument_id)
            .having(func.sum(signed_quantity) > _OPEN_QUANTITY_EPSILON)
            .all()
        )
        return sorted({row[0] for row in rows})

    def list_instrument_ids_traded_since(self, since: datetime) -> list[str]:
        """Instruments with at least one trade executed at or after ``since``."""
        rows = (
            self._db.query(TradeORM.instrument_id)
            .filter(TradeORM.executed_at >= to_utc(since))
            .distinct()
            .order_by(TradeORM.instrument_id)
            .all()
        )
        return [row[0] for row in rows]

    def create_revision(self, revision: TradeRevision) -> TradeRevision:
        """Create a new revision record."""
        orm_rev = TradeRevisionORM(
            rev_id=revision.rev_id,
            trade_id=revision.trade_id,
            portfolio_id=revision.portfolio_id,
            rev_time=to_utc(revision.rev_time),
            action=revision.action,
            before_json=revision.before_json,
            after_json=revision.after_json,
        )
        self._db.add(orm_rev)
        self._db.commit()
        self._db.refresh(orm_rev)
        return self._revision_to_domain(orm_rev)

    def list_revisions_by_trade(self, trade_id: str) -> list[TradeRevision]:
        """List all revisions for a trade."""
        orm_revs = (
            self._db.query(TradeRevisionORM)
            .filter(TradeRevisionORM.trade_id == trade_id)
            .order_by(TradeRevisionORM.rev_time)
            .all()
        )
        return [self._revision_to_domain(r) for r in orm_revs]

    @staticmethod
    def _to_orm(trade: Trade) -> TradeORM:
        """Convert domain model to ORM model."""
        return TradeORM(
            trade_id=trade.trade_id,
            portfolio_id=trade.portfolio_id,
            instrument_id=trade.instrument_id,
            side=trade.side,
            quantity=trade.quantity,
            price=trade.price,
            fees=trade.fees,
            currency=trade.currency,
            executed_at=to_utc(trade.executed_at),
            isin=trade.isin,
            ticker=trade.ticker,
            note=trade.note,
            created_at=to_utc(trade.created_at) if trade.created_at else now_utc(),
        )

    @staticmethod
    def _to_domain(orm: TradeORM) -> Trade:
        """Convert ORM model to domain model."""
        return Trade(
            trade_id=orm.trade_id,
            portfolio_id=orm.portfolio_id,
            instrument_id=orm.instrument_id,
            side=orm.side,
            quantity=Decimal(str(orm.quantity)),
            price=Decimal(str(orm.price)),
            fees=Decimal(str(orm.fees)) if orm.fees else Decimal("0"),
            currency=orm.currency,
            executed_at=to_utc(orm.executed_at),
            isin=orm.isin,
            ticker=orm.ticker,
            note=orm.note,
            created_at=to_utc(orm.created_at) if orm.created_at else None,
        )

    @staticmethod
    def _revision_to_domain(orm: TradeRevisionORM) -> TradeRevision:
        """Convert ORM revision to domain model."""
        return TradeRevision(
            rev_id=orm.rev_id,
            trade_id=orm.trade_id,
            portfolio_id=orm.portfolio_id,
            rev_time=to_utc(orm.rev_time),
            action=orm.action,
            before_json=orm.before_json,
            after_json=orm.after_json,
        )
