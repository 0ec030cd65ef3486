"""SQLAlchemy repository implementations."""

from tradefolio.repositories.sqlalchemy.database import (
    get_engine,
    get_session_factory,
    get_db,
    session_scope,
    init_db,
    reset_database,
    Base,
)
from tradefolio.repositories.sqlalchemy.trade_repo import SqlAlchemyTradeRepository
from tradefolio.repositories.sqlalchemy.instrument_repo import SqlAlchemyInstrumentRepository
from tradefolio.repositories.sqlalchemy.snapshot_repo import SqlAlchemySnapshotRepository

__all__ = [
    "get_engine",
    "get_session_factory",
    "get_db",
    "session_scope",
    "init_db",
    "reset_database",
    "Base",
    "SqlAlchemyTradeRepository",
    "SqlAlchemyInstrumentRepository",
    "SqlAlchemySnapshotRepository",
]
