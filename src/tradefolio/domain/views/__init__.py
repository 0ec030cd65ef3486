"""View models for service outputs."""

from tradefolio.domain.views.portfolio import (
    PartialSale,
    Lot,
    Position,
    PortfolioTotals,
    PortfolioValuation,
    round_quantity,
)
from tradefolio.domain.views.pricing import (
    PriceError,
    PricedInstrument,
    PriceResult,
    BatchMetrics,
    BatchResult,
    LivePricesResult,
    IndexQuote,
    CronJobMetrics,
    SnapshotStats,
)

__all__ = [
    "PartialSale",
    "Lot",
    "Position",
    "PortfolioTotals",
    "PortfolioValuation",
    "round_quantity",
    "PriceError",
    "PricedInstrument",
    "PriceResult",
    "BatchMetrics",
    "BatchResult",
    "LivePricesResult",
    "IndexQuote",
    "CronJobMetrics",
    "SnapshotStats",
]
