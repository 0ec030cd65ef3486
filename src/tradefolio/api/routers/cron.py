"""Cron trigger for the snapshot job."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from tradefolio.api.deps import get_snapshot_service, verify_cron_secret
from tradefolio.api.routers.prices import MAX_REPORTED_ERRORS
from tradefolio.api.schemas import CronJobResponse
from tradefolio.services import SnapshotService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"], dependencies=[Depends(verify_cron_secret)])


@router.post("/price-snapshots", response_model=CronJobResponse)
async def run_price_snapshots(service: SnapshotService = Depends(get_snapshot_service)):
    """
    Run the snapshot job once.

    Returns 200 when every instrument succeeded and 207 when some failed.
    """
    metrics = await service.run_job()
    response = CronJobResponse.model_validate(metrics)
    response.errors = response.errors[:MAX_REPORTED_ERRORS]
    if metrics.success:
        return response
    logger.warning("Snapshot run finished with %d errors", len(metrics.errors))
    return JSONResponse(status_code=207, content=response.model_dump(mode="json"))
