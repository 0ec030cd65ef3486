"""Pydantic schemas for price, index and snapshot endpoints."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class CachedPriceResponse(BaseModel):
    """Resolved price of one instrument. Decimals serialize as strings."""

    model_config = {"from_attributes": True}

    instrument_id: str
    price: Decimal
    currency: str
    as_of: datetime
    source: str
    open: Optional[Decimal] = None
    high: Optional[Decimal] = None
    low: Optional[Decimal] = None
    previous_close: Optional[Decimal] = None
    change: Optional[Decimal] = None
    change_percent: Optional[Decimal] = None


class PriceErrorResponse(BaseModel):
    model_config = {"from_attributes": True}

    instrument_id: str
    message: str
    code: str
    label: Optional[str] = None


class BatchMetricsResponse(BaseModel):
    model_config = {"from_attributes": True}

    total: int
    success: int
    failed: int
    cache_hits: int
    provider_calls: int
    store_hits: int
    cache_hit_rate: float
    avg_latency_ms: float
    min_latency_ms: float
    max_latency_ms: float
    duration_ms: float


class LivePricesResponse(BaseModel):
    """Response for GET /prices/live; partial success is normal."""

    model_config = {"from_attributes": True}

    prices: dict[str, CachedPriceResponse]
    errors: list[PriceErrorResponse]
    metrics: BatchMetricsResponse


class IndexQuoteResponse(BaseModel):
    model_config = {"from_attributes": True}

    name: str
    symbol: str
    price: Decimal
    change_percent: Optional[Decimal] = None
    source: str
    as_of: datetime


class IndicesResponse(BaseModel):
    indices: list[IndexQuoteResponse]


class SnapshotResponse(BaseModel):
    model_config = {"from_attributes": True}

    instrument_id: str
    price: Decimal
    currency: str
    source: str
    snapshot_at: datetime


class PriceHistoryResponse(BaseModel):
    instrument_id: str
    snapshots: list[SnapshotResponse]


class SnapshotStatsResponse(BaseModel):
    model_config = {"from_attributes": True}

    total_snapshots: int
    instrument_count: int
    oldest_snapshot_at: Optional[datetime] = None
    newest_snapshot_at: Optional[datetime] = None


class SnapshotRunRequest(BaseModel):
    """Request schema for a manual snapshot run."""

    instrument_ids: list[str] = Field(..., min_length=1, description="Instruments to snapshot now")


class CronJobResponse(BaseModel):
    """Report of a snapshot run. At most 20 errors are included."""

    model_config = {"from_attributes": True}

    success: bool
    started_at: datetime
    finished_at: Optional[datetime] = None
    duration_ms: float
    total_instruments: int
    processed: int
    successful: int
    failed: int
    skipped: int
    up_to_date: int
    snapshots_written: int
    batch_count: int
    throttle_count: int
    cache_hits: int
    provider_calls: int
    timed_out: bool
    errors: list[PriceErrorResponse]
