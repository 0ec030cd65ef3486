"""Repository layer - data access abstractions and implementations."""

from tradefolio.repositories.protocols import (
    TradeRepository,
    InstrumentRepository,
    SnapshotRepository,
)

__all__ = [
    "TradeRepository",
    "InstrumentRepository",
    "SnapshotRepository",
]
