"""Repository protocol definitions (interfaces)."""

from tradefolio.repositories.protocols.trade_repo import TradeRepository
from tradefolio.repositories.protocols.instrument_repo import InstrumentRepository
from tradefolio.repositories.protocols.snapshot_repo import SnapshotRepository

__all__ = [
    "TradeRepository",
    "InstrumentRepository",
    "SnapshotRepository",
]
