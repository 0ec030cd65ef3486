"""Pydantic schemas for positions, totals and trades."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from tradefolio.api.schemas.price import PriceErrorResponse
from tradefolio.domain.models import TradeSide


class PartialSaleResponse(BaseModel):
    model_config = {"from_attributes": True}

    sell_trade_id: str
    quantity: Decimal
    sale_price: Decimal
    proceeds: Decimal
    realized_pnl: Decimal
    sold_at: datetime


class LotResponse(BaseModel):
    model_config = {"from_attributes": True}

    trade_id: str
    quantity: Decimal
    remaining_quantity: Decimal
    price: Decimal
    fees: Decimal
    acquired_at: datetime
    partial_sales: list[PartialSaleResponse]


class PositionResponse(BaseModel):
    """A derived position; valued at average cost when no price was available."""

    model_config = {"from_attributes": True}

    instrument_id: str
    portfolio_id: str
    currency: str
    isin: Optional[str] = None
    ticker: Optional[str] = None
    open_quantity: Decimal
    average_cost: Decimal
    invested: Decimal
    realized_pnl: Decimal
    total_fees: Decimal
    is_closed: bool
    trade_count: int
    first_trade_at: Optional[datetime] = None
    last_trade_at: Optional[datetime] = None
    current_price: Optional[Decimal] = None
    price_available: bool
    market_value: Decimal
    unrealized_pnl: Decimal
    total_pnl: Decimal
    unrealized_pnl_percent: Decimal
    total_pnl_percent: Decimal
    open_lots: list[LotResponse]
    closed_lots: list[LotResponse]


class PositionsResponse(BaseModel):
    portfolio_id: str
    positions: list[PositionResponse]
    price_errors: list[PriceErrorResponse]
    valued_at: Optional[datetime] = None


class PortfolioTotalsResponse(BaseModel):
    model_config = {"from_attributes": True}

    total_value: Decimal
    total_invested: Decimal
    realized_pnl: Decimal
    unrealized_pnl: Decimal
    total_pnl: Decimal
    total_pnl_percent: Decimal
    total_fees: Decimal
    profit_sum: Decimal
    position_count: int
    open_count: int
    closed_count: int
    winning_count: int
    losing_count: int
    unpriced_count: int


class TradeCreateRequest(BaseModel):
    """Request schema for recording a trade."""

    instrument_id: str = Field(..., min_length=1, description="Instrument ID")
    side: TradeSide = Field(..., description="BUY or SELL")
    quantity: Decimal = Field(..., gt=0, description="Units traded (fractional allowed)")
    price: Decimal = Field(..., gt=0, description="Price per unit")
    fees: Decimal = Field(default=Decimal("0"), ge=0, description="Trade fees")
    executed_at: Optional[datetime] = Field(default=None, description="Execution time; defaults to now")
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    note: Optional[str] = Field(default=None, max_length=500)

    @field_validator("side", mode="before")
    @classmethod
    def uppercase_side(cls, v):
        return v.upper() if isinstance(v, str) else v


class TradeResponse(BaseModel):
    model_config = {"from_attributes": True}

    trade_id: str
    portfolio_id: str
    instrument_id: str
    side: TradeSide
    quantity: Decimal
    price: Decimal
    fees: Decimal
    currency: str
    executed_at: datetime
    isin: Optional[str] = None
    ticker: Optional[str] = None
    note: Optional[str] = None
