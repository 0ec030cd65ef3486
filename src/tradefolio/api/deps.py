"""Dependency injection for FastAPI."""

from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from tradefolio.app_context import AppContext, get_app_context
from tradefolio.repositories.sqlalchemy.database import get_db
from tradefolio.services import (
    IndexService,
    LedgerService,
    LivePriceService,
    PortfolioService,
    SnapshotService,
)


def get_context() -> AppContext:
    """Provide the process-wide application context."""
    return get_app_context()


def get_ledger_service(
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
) -> LedgerService:
    """Provide LedgerService instance."""
    return context.ledger(db)


def get_portfolio_service(
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
) -> PortfolioService:
    """Provide PortfolioService instance."""
    return context.portfolio(db)


def get_live_price_service(
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
) -> LivePriceService:
    """Provide LivePriceService instance."""
    return context.live_prices(db)


def get_index_service(context: AppContext = Depends(get_context)) -> IndexService:
    """Provide IndexService instance."""
    return context.indices()


def get_snapshot_service(
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
) -> SnapshotService:
    """Provide SnapshotService instance."""
    return context.snapshots(db)


def verify_cron_secret(
    authorization: Optional[str] = Header(default=None),
    context: AppContext = Depends(get_context),
) -> None:
    """Require ``Authorization: Bearer <cron_secret>`` when a secret is configured."""
    secret = context.settings.cron_secret
    if not secret:
        return
    if authorization is None:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    if authorization != f"Bearer {secret}":
        raise HTTPException(status_code=401, detail="Invalid credentials")
