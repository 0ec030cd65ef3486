"""Domain layer - pure business models with no external dependencies."""

from tradefolio.domain.models import (
    Trade,
    TradeRevision,
    Instrument,
    Quote,
    CachedPrice,
    PriceSnapshot,
    TradeSide,
    RevisionAction,
    InstrumentKind,
    PriceOrigin,
)

__all__ = [
    "Trade",
    "TradeRevision",
    "Instrument",
    "Quote",
    "CachedPrice",
    "PriceSnapshot",
    "TradeSide",
    "RevisionAction",
    "InstrumentKind",
    "PriceOrigin",
]
