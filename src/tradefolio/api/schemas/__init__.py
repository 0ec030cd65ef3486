"""API request/response schemas."""

from tradefolio.api.schemas.price import (
    CachedPriceResponse,
    PriceErrorResponse,
    BatchMetricsResponse,
    LivePricesResponse,
    IndexQuoteResponse,
    IndicesResponse,
    SnapshotResponse,
    PriceHistoryResponse,
    SnapshotStatsResponse,
    SnapshotRunRequest,
    CronJobResponse,
)
from tradefolio.api.schemas.portfolio import (
    PartialSaleResponse,
    LotResponse,
    PositionResponse,
    PositionsResponse,
    PortfolioTotalsResponse,
    TradeCreateRequest,
    TradeResponse,
)

__all__ = [
    "CachedPriceResponse",
    "PriceErrorResponse",
    "BatchMetricsResponse",
    "LivePricesResponse",
    "IndexQuoteResponse",
    "IndicesResponse",
    "SnapshotResponse",
    "PriceHistoryResponse",
    "SnapshotStatsResponse",
    "SnapshotRunRequest",
    "CronJobResponse",
    "PartialSaleResponse",
    "LotResponse",
    "PositionResponse",
    "PositionsResponse",
    "PortfolioTotalsResponse",
    "TradeCreateRequest",
    "TradeResponse",
]
