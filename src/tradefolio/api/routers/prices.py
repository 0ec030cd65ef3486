"""Live prices, benchmark indices and snapshot history."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from tradefolio.api.deps import get_index_service, get_live_price_service, get_snapshot_service
from tradefolio.api.schemas import (
    CronJobResponse,
    IndexQuoteResponse,
    IndicesResponse,
    LivePricesResponse,
    PriceHistoryResponse,
    SnapshotResponse,
    SnapshotRunRequest,
    SnapshotStatsResponse,
)
from tradefolio.core.exceptions import ValidationError
from tradefolio.services import IndexService, LivePriceService, SnapshotService

router = APIRouter(prefix="/prices", tags=["prices"])

MAX_REPORTED_ERRORS = 20


def _split_ids(ids: list[str]) -> list[str]:
    """Accept both ``?ids=a,b`` and repeated ``?ids=a&ids=b``."""
    return [part.strip() for value in ids for part in value.split(",") if part.strip()]


@router.get("/live", response_model=LivePricesResponse)
async def get_live_prices(
    ids: list[str] = Query(..., description="Instrument ids, comma separated or repeated"),
    max_age: Optional[int] = Query(None, ge=0, description="Maximum cache age in seconds"),
    force_fresh: bool = Query(False, description="Bypass the hot cache"),
    service: LivePriceService = Depends(get_live_price_service),
):
    """Resolve current prices; unresolvable instruments are listed under ``errors``."""
    instrument_ids = _split_ids(ids)
    if not instrument_ids:
        raise ValidationError("At least one instrument id is required")
    result = await service.resolve_prices(instrument_ids, max_age_seconds=max_age, force_fresh=force_fresh)
    return LivePricesResponse.model_validate(result)


@router.get("/indices", response_model=IndicesResponse)
async def get_indices(service: IndexService = Depends(get_index_service)):
    """Benchmark index values merged across providers."""
    quotes = await service.get_indices()
    return IndicesResponse(indices=[IndexQuoteResponse.model_validate(q) for q in quotes])


@router.get("/history/{instrument_id}", response_model=PriceHistoryResponse)
def get_price_history(
    instrument_id: str,
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    service: SnapshotService = Depends(get_snapshot_service),
):
    """Stored price snapshots of one instrument, oldest first."""
    snapshots = service.history(instrument_id, start=start, end=end)
    return PriceHistoryResponse(
        instrument_id=instrument_id,
        snapshots=[SnapshotResponse.model_validate(s) for s in snapshots],
    )


@router.get("/snapshots/stats", response_model=SnapshotStatsResponse)
def get_snapshot_stats(service: SnapshotService = Depends(get_snapshot_service)):
    """Size and time span of the snapshot store."""
    return SnapshotStatsResponse.model_validate(service.stats())


@router.post("/snapshots", response_model=CronJobResponse)
async def save_snapshots(
    data: SnapshotRunRequest,
    service: SnapshotService = Depends(get_snapshot_service),
):
    """Snapshot the given instruments immediately."""
    metrics = await service.save_snapshots_for_instruments(data.instrument_ids)
    response = CronJobResponse.model_validate(metrics)
    response.errors = response.errors[:MAX_REPORTED_ERRORS]
    return response
