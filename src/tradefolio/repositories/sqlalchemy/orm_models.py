"""SQLAlchemy ORM model definitions."""

from decimal import Decimal

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Text,
    ForeignKey,
    Numeric,
    UniqueConstraint,
    Index,
    Enum as SqlEnum,
)
from sqlalchemy.orm import relationship

from tradefolio.core.timezone import now_utc
from tradefolio.repositories.sqlalchemy.database import Base
from tradefolio.domain.models.enums import TradeSide, RevisionAction


class InstrumentORM(Base):
    """SQLAlchemy model for Instrument (directory entry)."""

    __tablename__ = "instruments"

    instrument_id = Column(String(36), primary_key=True)
    symbol = Column(String(32), nullable=True, index=True)
    isin = Column(String(12), nullable=True, index=True)
    name = Column(String(255), nullable=True)
    currency = Column(String(3), nullable=False, default="EUR")
    created_at = Column(DateTime(timezone=True), nullable=False, default=now_utc)

    trades = relationship("TradeORM", back_populates="instrument")


class TradeORM(Base):
    """SQLAlchemy model for Trade (ledger entry)."""

    __tablename__ = "trades"
    __table_args__ = (
        Index("ix_trades_portfolio_executed", "portfolio_id", "executed_at"),
    )

    trade_id = Column(String(36), primary_key=True)
    portfolio_id = Column(String(36), nullable=False, index=True)
    instrument_id = Column(String(36), ForeignKey("instruments.instrument_id"), nullable=False)
    side = Column(SqlEnum(TradeSide), nullable=False)
    quantity = Column(Numeric(precision=28, scale=8), nullable=False)
    price = Column(Numeric(precision=28, scale=8), nullable=False)
    fees = Column(Numeric(precision=18, scale=4), default=Decimal("0"))
    currency = Column(String(3), nullable=False, default="EUR")
    executed_at = Column(DateTime(timezone=True), nullable=False, index=True)
    isin = Column(String(12), nullable=True)
    ticker = Column(String(32), nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=now_utc)

    instrument = relationship("InstrumentORM", back_populates="trades")


class TradeRevisionORM(Base):
    """SQLAlchemy model for TradeRevision (audit trail). Outlives removed trades."""

    __tablename__ = "trade_revisions"

    rev_id = Column(String(36), primary_key=True)
    trade_id = Column(String(36), nullable=False, index=True)
    portfolio_id = Column(String(36), nullable=False)
    rev_time = Column(DateTime(timezone=True), nullable=False)
    action = Column(SqlEnum(RevisionAction), nullable=False)
    before_json = Column(Text, nullable=True)
    after_json = Column(Text, nullable=True)


class PriceSnapshotORM(Base):
    """SQLAlchemy model for PriceSnapshot (append-only history)."""

    __tablename__ = "price_snapshots"
    __table_args__ = (
        UniqueConstraint("instrument_id", "snapshot_at", name="uq_price_snapshots_instrument_time"),
    )

    snapshot_id = Column(Integer, primary_key=True, autoincrement=True)
    instrument_id = Column(String(36), nullable=False, index=True)
    price = Column(Numeric(precision=28, scale=8), nullable=False)
    currency = Column(String(3), nullable=False)
    source = Column(String(32), nullable=False)
    snapshot_at = Column(DateTime(timezone=True), nullable=False, index=True)
