"""Portfolio positions, totals and trade recording."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from tradefolio.api.deps import get_ledger_service, get_portfolio_service
from tradefolio.api.schemas import (
    PortfolioTotalsResponse,
    PositionResponse,
    PositionsResponse,
    PriceErrorResponse,
    TradeCreateRequest,
    TradeResponse,
)
from tradefolio.services import LedgerService, PortfolioService, TradeCreate

router = APIRouter(tags=["portfolios"])


@router.get("/portfolios/{portfolio_id}/positions", response_model=PositionsResponse)
async def get_positions(
    portfolio_id: str,
    include_closed: bool = Query(True),
    service: PortfolioService = Depends(get_portfolio_service),
):
    """Positions valued at current prices (average cost where no price is available)."""
    valuation = await service.value_portfolio(portfolio_id, include_closed=include_closed)
    return PositionsResponse(
        portfolio_id=valuation.portfolio_id,
        positions=[PositionResponse.model_validate(p) for p in valuation.positions],
        price_errors=[PriceErrorResponse.model_validate(e) for e in valuation.price_errors],
        valued_at=valuation.valued_at,
    )


@router.get("/portfolios/{portfolio_id}/totals", response_model=PortfolioTotalsResponse)
async def get_totals(
    portfolio_id: str,
    open_only: bool = Query(False),
    closed_only: bool = Query(False),
    profit_only: bool = Query(False),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    service: PortfolioService = Depends(get_portfolio_service),
):
    """Portfolio totals over filtered positions."""
    totals = await service.compute_totals(
        portfolio_id,
        open_only=open_only,
        closed_only=closed_only,
        profit_only=profit_only,
        date_from=date_from,
        date_to=date_to,
    )
    return PortfolioTotalsResponse.model_validate(totals)


@router.get("/portfolios/{portfolio_id}/trades", response_model=list[TradeResponse])
def list_trades(
    portfolio_id: str,
    instrument_id: Optional[str] = Query(None),
    service: LedgerService = Depends(get_ledger_service),
):
    """Trades of a portfolio in execution order."""
    return [TradeResponse.model_validate(t) for t in service.list_trades(portfolio_id, instrument_id)]


@router.post("/portfolios/{portfolio_id}/trades", response_model=TradeResponse, status_code=201)
def record_trade(
    portfolio_id: str,
    data: TradeCreateRequest,
    service: LedgerService = Depends(get_ledger_service),
):
    """Record a trade. Overselling is rejected with INSUFFICIENT_QUANTITY."""
    trade = service.record_trade(
        TradeCreate(
            portfolio_id=portfolio_id,
            instrument_id=data.instrument_id,
            side=data.side,
            quantity=data.quantity,
            price=data.price,
            fees=data.fees,
            executed_at=data.executed_at,
            currency=data.currency,
            note=data.note,
        )
    )
    return TradeResponse.model_validate(trade)


@router.delete("/trades/{trade_id}", status_code=204)
def remove_trade(trade_id: str, service: LedgerService = Depends(get_ledger_service)):
    """Remove a trade; the removal is kept in the audit trail."""
    service.remove_trade(trade_id)
