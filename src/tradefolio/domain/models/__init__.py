"""Domain models package."""

from tradefolio.domain.models.enums import TradeSide, RevisionAction, InstrumentKind, PriceOrigin
from tradefolio.domain.models.trade import Trade, TradeRevision
from tradefolio.domain.models.instrument import Instrument
from tradefolio.domain.models.price import Quote, CachedPrice, PriceSnapshot

__all__ = [
    "TradeSide",
    "RevisionAction",
    "InstrumentKind",
    "PriceOrigin",
    "Trade",
    "TradeRevision",
    "Instrument",
    "Quote",
    "CachedPrice",
    "PriceSnapshot",
]
