"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tradefolio import __version__
from tradefolio.app_context import get_app_context, set_app_context
from tradefolio.config.settings import get_settings
from tradefolio.config.logging_config import setup_logging
from tradefolio.repositories.sqlalchemy.database import init_db
from tradefolio.api.routers import prices_router, portfolios_router, cron_router
from tradefolio.core.exceptions import (
    AppError,
    InsufficientQuantityError,
    NotFoundError,
    QuoteUnavailableError,
    SnapshotJobError,
    ValidationError,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    setup_logging()
    init_db()
    context = get_app_context()
    if context.settings.scheduler_enabled:
        context.start_scheduler()
    yield
    # Shutdown
    await context.close()
    set_app_context(None)


settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    description="Trade ledger, live portfolio valuation and price snapshots",
    version=__version__,
    lifespan=lifespan,
)

# Include routers
app.include_router(prices_router)
app.include_router(portfolios_router)
app.include_router(cron_router)


def status_for(exc: AppError) -> int:
    """HTTP status code for an application error."""
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, (ValidationError, InsufficientQuantityError)):
        return 400
    if isinstance(exc, QuoteUnavailableError):
        return 502
    if isinstance(exc, SnapshotJobError):
        return 500
    return 400


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Global handler for application errors."""
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.code, "message": exc.message},
    )


@app.get("/health")
def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/")
def root() -> dict[str, str]:
    """Root endpoint with API info."""
    return {
        "app": settings.app_name,
        "version": __version__,
        "docs": "/docs",
    }
