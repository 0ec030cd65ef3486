"""API routers package."""

from tradefolio.api.routers.prices import router as prices_router
from tradefolio.api.routers.portfolios import router as portfolios_router
from tradefolio.api.routers.cron import router as cron_router

__all__ = [
    "prices_router",
    "portfolios_router",
    "cron_router",
]
