"""Periodic scheduling of the snapshot job."""

import logging
from typing import Awaitable, Callable

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from tradefolio.domain.views import CronJobMetrics

logger = logging.getLogger(__name__)

SNAPSHOT_JOB_ID = "price_snapshots"


def build_scheduler(
    run_snapshots: Callable[[], Awaitable[CronJobMetrics]],
    interval_minutes: int = 15,
) -> AsyncIOScheduler:
    """
    Create an (unstarted) scheduler running ``run_snapshots`` every interval.

    Overlapping runs are not allowed; missed runs collapse into one.
    """
    scheduler = AsyncIOScheduler(timezone=pytz.utc)
    scheduler.add_job(
        run_snapshots,
        IntervalTrigger(minutes=interval_minutes),
        id=SNAPSHOT_JOB_ID,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    logger.info("Snapshot job scheduled every %d minutes", interval_minutes)
    return scheduler
