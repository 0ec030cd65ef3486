"""Periodic snapshot job: persists current prices for historical charting."""

import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Awaitable, Callable

from tradefolio.config.settings import Settings
from tradefolio.core.exceptions import SnapshotJobError
from tradefolio.core.timezone import now_utc, to_utc
from tradefolio.domain.models import PriceSnapshot
from tradefolio.domain.views import CronJobMetrics, PriceError, PriceResult
from tradefolio.repositories.protocols import (
    InstrumentRepository,
    SnapshotRepository,
    TradeRepository,
)
from tradefolio.services.batch_fetcher import BatchFetcher

logger = logging.getLogger(__name__)


def chunk(items: list[str], size: int) -> list[list[str]]:
    """Split ``items`` into consecutive chunks of at most ``size``."""
    return [items[i:i + size] for i in range(0, len(items), size)]


class SnapshotJob:
    """
    Fetches prices for the active working set and appends one snapshot each.

    Work proceeds in fixed-size batches with a delay between them. A
    wall-clock deadline is checked before every batch; instruments left
    when it passes are reported as skipped. Prices come from the hot cache
    (with a relaxed max age) or the providers, never from stored snapshots.
    """

    def __init__(
        self,
        batch_fetcher: BatchFetcher,
        trade_repo: TradeRepository,
        instrument_repo: InstrumentRepository,
        snapshot_repo: SnapshotRepository,
        batch_size: int = 30,
        batch_delay_seconds: float = 1.0,
        max_instruments: int = 300,
        timeout_seconds: float = 50.0,
        recent_trades_days: int = 30,
        max_age_seconds: int = 300,
        min_interval_seconds: int = 600,
        max_concurrent: int = 10,
        clock: Callable[[], datetime] = now_utc,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        timer: Callable[[], float] = time.monotonic,
    ):
        self._batch_fetcher = batch_fetcher
        self._trade_repo = trade_repo
        self._instrument_repo = instrument_repo
        self._snapshot_repo = snapshot_repo
        self._batch_size = batch_size
        self._batch_delay = batch_delay_seconds
        self._max_instruments = max_instruments
        self._timeout = timeout_seconds
        self._recent_trades_days = recent_trades_days
        self._max_age = max_age_seconds
        self._min_interval = min_interval_seconds
        self._max_concurrent = max_concurrent
        self._clock = clock
        self._sleep = sleep
        self._timer = timer

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        batch_fetcher: BatchFetcher,
        trade_repo: TradeRepository,
        instrument_repo: InstrumentRepository,
        snapshot_repo: SnapshotRepository,
    ) -> "SnapshotJob":
        return cls(
            batch_fetcher=batch_fetcher,
            trade_repo=trade_repo,
            instrument_repo=instrument_repo,
            snapshot_repo=snapshot_repo,
            batch_size=settings.snapshot_batch_size,
            batch_delay_seconds=settings.snapshot_batch_delay_seconds,
            max_instruments=settings.snapshot_max_instruments,
            timeout_seconds=settings.snapshot_job_timeout_seconds,
            recent_trades_days=settings.snapshot_recent_trades_days,
            max_age_seconds=settings.snapshot_max_age_seconds,
            min_interval_seconds=settings.snapshot_min_interval_seconds,
            max_concurrent=settings.batch_max_concurrent,
        )

    async def run(self) -> CronJobMetrics:
        """
        Run one snapshot pass over the working set.

        Instruments that already have a snapshot younger than the minimum
        interval are counted as up to date, so a re-run shortly after a
        successful run writes nothing new.

        Raises:
            SnapshotJobError: neither the ledger nor the instrument directory
                could provide a working set.
        """
        metrics = CronJobMetrics(started_at=self._clock())
        started = self._timer()

        working_set = await self.load_working_set()
        metrics.total_instruments = len(working_set)
        selected = working_set[: self._max_instruments]
        metrics.skipped += len(working_set) - len(selected)

        pending = await self._drop_up_to_date(selected, metrics)
        await self._process(pending, metrics, started)
        return self._finish(metrics, started)

    async def save_snapshots_for_instruments(self, instrument_ids: list[str]) -> CronJobMetrics:
        """Snapshot the given instruments now, regardless of when they were last snapshotted."""
        metrics = CronJobMetrics(started_at=self._clock())
        started = self._timer()

        unique = list(dict.fromkeys(instrument_ids))
        metrics.total_instruments = len(unique)
        selected = unique[: self._max_instruments]
        metrics.skipped += len(unique) - len(selected)

        await self._process(selected, metrics, started)
        return self._finish(metrics, started)

    async def load_working_set(self) -> list[str]:
        """
        Instruments to snapshot: open positions first, then recently traded ones.

        Falls back to the first known instruments of the directory when the
        ledger cannot be read.
        """
        since = self._clock() - timedelta(days=self._recent_trades_days)
        try:
            open_ids = await asyncio.to_thread(self._trade_repo.list_open_instrument_ids)
            recent_ids = await asyncio.to_thread(self._trade_repo.list_instrument_ids_traded_since, since)
        except Exception as exc:
            logger.warning("Could not load working set from ledger (%r); using instrument directory", exc)
            try:
                return await asyncio.to_thread(self._instrument_repo.list_ids, self._max_instruments)
            except Exception as fallback_exc:
                raise SnapshotJobError(
                    f"Unable to determine instruments to snapshot: {fallback_exc}"
                ) from fallback_exc

        working_set = list(dict.fromkeys([*open_ids, *recent_ids]))
        logger.info(
            "Snapshot working set: %d open, %d recently traded, %d total",
            len(open_ids), len(recent_ids), len(working_set),
        )
        return working_set

    async def _drop_up_to_date(self, instrument_ids: list[str], metrics: CronJobMetrics) -> list[str]:
        if not instrument_ids or self._min_interval <= 0:
            return instrument_ids
        try:
            latest = await asyncio.to_thread(self._snapshot_repo.latest_times, instrument_ids)
        except Exception as exc:
            logger.warning("Could not read latest snapshot times: %r", exc)
            return instrument_ids

        now = self._clock()
        pending: list[str] = []
        for instrument_id in instrument_ids:
            last = latest.get(instrument_id)
            if last is not None and (now - to_utc(last)).total_seconds() < self._min_interval:
                metrics.up_to_date += 1
            else:
                pending.append(instrument_id)
        return pending

    async def _process(self, instrument_ids: list[str], metrics: CronJobMetrics, started: float) -> None:
        if not instrument_ids:
            return
        try:
            directory = await asyncio.to_thread(self._instrument_repo.get_many, instrument_ids)
        except Exception as exc:
            raise SnapshotJobError(f"Unable to load instrument details: {exc}") from exc

        snapshot_at = metrics.started_at.replace(microsecond=0)
        batches = chunk(instrument_ids, self._batch_size)
        for index, batch in enumerate(batches):
            elapsed = self._timer() - started
            if elapsed >= self._timeout:
                remaining = sum(len(b) for b in batches[index:])
                logger.warning(
                    "Snapshot job deadline reached after %.1fs; skipping %d instruments", elapsed, remaining
                )
                metrics.timed_out = True
                metrics.skipped += remaining
                break

            metrics.batch_count += 1
            logger.info("Processing snapshot batch %d/%d (%d instruments)", index + 1, len(batches), len(batch))

            known = []
            for instrument_id in batch:
                instrument = directory.get(instrument_id)
                if instrument is None:
                    metrics.processed += 1
                    self._record_error(
                        metrics,
                        PriceError(instrument_id, f"Instrument not found: {instrument_id}", code="NOT_FOUND"),
                    )
                else:
                    known.append(instrument)

            if known:
                result = await self._batch_fetcher.fetch_batch(
                    known,
                    max_concurrent=self._max_concurrent,
                    max_age_seconds=self._max_age,
                )
                metrics.cache_hits += result.metrics.cache_hits
                metrics.provider_calls += result.metrics.provider_calls
                for price_result in result.results.values():
                    metrics.processed += 1
                    await self._persist(price_result, snapshot_at, metrics)

            if index < len(batches) - 1:
                await self._sleep(self._batch_delay)
                metrics.throttle_count += 1

    async def _persist(self, result: PriceResult, snapshot_at: datetime, metrics: CronJobMetrics) -> None:
        if result.price is None:
            self._record_error(metrics, result.error or PriceError(result.instrument_id, "Unknown error"))
            return

        snapshot = PriceSnapshot.from_price(result.price, snapshot_at)
        try:
            written = await asyncio.to_thread(self._snapshot_repo.append, snapshot)
        except Exception as exc:
            logger.warning("Failed to persist snapshot for %s: %r", result.instrument_id, exc)
            self._record_error(
                metrics,
                PriceError(result.instrument_id, f"Failed to persist snapshot: {exc}", code="PERSISTENCE_ERROR"),
            )
            return

        metrics.successful += 1
        if written:
            metrics.snapshots_written += 1

    @staticmethod
    def _record_error(metrics: CronJobMetrics, error: PriceError) -> None:
        metrics.failed += 1
        metrics.errors.append(error)

    def _finish(self, metrics: CronJobMetrics, started: float) -> CronJobMetrics:
        metrics.finished_at = self._clock()
        metrics.duration_ms = round((self._timer() - started) * 1000, 2)
        logger.info(
            "Snapshot job finished: success=%s processed=%d ok=%d failed=%d skipped=%d "
            "up_to_date=%d written=%d cache_hits=%d provider_calls=%d duration=%.0fms",
            metrics.success, metrics.processed, metrics.successful, metrics.failed, metrics.skipped,
            metrics.up_to_date, metrics.snapshots_written, metrics.cache_hits, metrics.provider_calls,
            metrics.duration_ms,
        )
        return metrics
