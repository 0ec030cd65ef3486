"""Service layer for business logic."""

from tradefolio.services.portfolio_engine import PortfolioEngine, aggregate, compute_totals
from tradefolio.services.waterfall_resolver import WaterfallResolver
from tradefolio.services.price_service import PriceService
from tradefolio.services.batch_fetcher import BatchFetcher, BatchObserver
from tradefolio.services.snapshot_job import SnapshotJob
from tradefolio.services.live_prices import LivePriceService, IndexService
from tradefolio.services.ledger_service import LedgerService, TradeCreate
from tradefolio.services.portfolio_service import PortfolioService
from tradefolio.services.snapshot_service import SnapshotService
from tradefolio.services.scheduler import build_scheduler

__all__ = [
    "PortfolioEngine",
    "aggregate",
    "compute_totals",
    "WaterfallResolver",
    "PriceService",
    "BatchFetcher",
    "BatchObserver",
    "SnapshotJob",
    "LivePriceService",
    "IndexService",
    "LedgerService",
    "TradeCreate",
    "PortfolioService",
    "SnapshotService",
    "build_scheduler",
]
