"""Batch fetch orchestrator with bounded concurrency and per-call metrics."""

import asyncio
import logging
import time
from typing import Iterable, Optional, Protocol

from tradefolio.core.exceptions import AppError, ValidationError
from tradefolio.domain.models import CachedPrice, Instrument, PriceOrigin
from tradefolio.domain.views import BatchMetrics, BatchResult, PriceError, PriceResult
from tradefolio.repositories.protocols import SnapshotRepository
from tradefolio.services.price_service import PriceService

logger = logging.getLogger(__name__)


class BatchObserver(Protocol):
    """Instrumentation hook called around every per-instrument resolution."""

    def on_start(self, instrument_id: str) -> None:
        ...

    def on_finish(self, result: PriceResult) -> None:
        ...


class MetricsAccumulator:
    """Builds BatchMetrics incrementally as results come in."""

    def __init__(self) -> None:
        self._metrics = BatchMetrics()
        self._latency_sum = 0.0

    def record(self, result: PriceResult) -> None:
        m = self._metrics
        m.total += 1
        if result.ok:
            m.success += 1
        else:
            m.failed += 1
        if result.origin == PriceOrigin.CACHE:
            m.cache_hits += 1
        elif result.origin == PriceOrigin.PROVIDER:
            m.provider_calls += 1
        elif result.origin == PriceOrigin.STORE:
            m.store_hits += 1

        latency = result.latency_ms
        self._latency_sum += latency
        m.min_latency_ms = latency if m.total == 1 else min(m.min_latency_ms, latency)
        m.max_latency_ms = max(m.max_latency_ms, latency)
        m.avg_latency_ms = round(self._latency_sum / m.total, 2)

    def finish(self, duration_ms: float) -> BatchMetrics:
        self._metrics.duration_ms = round(duration_ms, 2)
        return self._metrics


def validate_instruments(instruments: Iterable[Instrument], max_instruments: int) -> list[Instrument]:
    """
    Drop duplicate instrument ids (first occurrence wins) and enforce the batch cap.

    Raises:
        ValidationError: more distinct instruments than ``max_instruments``.
    """
    seen: set[str] = set()
    unique: list[Instrument] = []
    for instrument in instruments:
        if instrument.instrument_id in seen:
            continue
        seen.add(instrument.instrument_id)
        unique.append(instrument)
    if len(unique) > max_instruments:
        raise ValidationError(
            f"Batch of {len(unique)} instruments exceeds the limit of {max_instruments}"
        )
    return unique


class BatchFetcher:
    """
    Resolves many instruments concurrently with at most K calls in flight.

    One instrument's failure becomes an error entry and never aborts the batch.
    Results carry no ordering guarantee beyond being keyed by instrument id.
    """

    def __init__(
        self,
        price_service: PriceService,
        max_concurrent: int = 10,
        max_instruments: int = 100,
    ):
        self._price_service = price_service
        self._max_concurrent = max_concurrent
        self._max_instruments = max_instruments

    @property
    def max_instruments(self) -> int:
        return self._max_instruments

    async def fetch_batch(
        self,
        instruments: list[Instrument],
        max_concurrent: Optional[int] = None,
        max_age_seconds: int = 60,
        force_fresh: bool = False,
        fallback_store: Optional[SnapshotRepository] = None,
        observer: Optional[BatchObserver] = None,
    ) -> BatchResult:
        """Fetch prices for ``instruments`` and return results plus metrics."""
        unique = validate_instruments(instruments, self._max_instruments)
        limit = max_concurrent or self._max_concurrent
        if limit < 1:
            raise ValidationError("max_concurrent must be at least 1")

        semaphore = asyncio.Semaphore(limit)
        accumulator = MetricsAccumulator()
        started = time.perf_counter()
        prefetched = await self._price_service.prefetch(unique, max_age_seconds, force_fresh)

        async def run_one(instrument: Instrument) -> PriceResult:
            async with semaphore:
                if observer is not None:
                    observer.on_start(instrument.instrument_id)
                result = await self._fetch_one(
                    instrument, max_age_seconds, force_fresh, fallback_store, prefetched.get(instrument.instrument_id)
                )
                accumulator.record(result)
                if observer is not None:
                    observer.on_finish(result)
                return result

        results = await asyncio.gather(*(run_one(instrument) for instrument in unique))
        metrics = accumulator.finish((time.perf_counter() - started) * 1000)

        logger.info(
            "Batch fetch: %d/%d ok, %d cache hits, %d provider calls, %.0fms",
            metrics.success, metrics.total, metrics.cache_hits, metrics.provider_calls, metrics.duration_ms,
        )
        return BatchResult(
            results={result.instrument_id: result for result in results},
            metrics=metrics,
        )

    async def _fetch_one(
        self,
        instrument: Instrument,
        max_age_seconds: int,
        force_fresh: bool,
        fallback_store: Optional[SnapshotRepository],
        prefetched: Optional[CachedPrice] = None,
    ) -> PriceResult:
        started = time.perf_counter()
        try:
            priced = await self._price_service.get_price(
                instrument,
                max_age_seconds=max_age_seconds,
                force_fresh=force_fresh,
                fallback_store=fallback_store,
                prefetched=prefetched,
            )
        except AppError as exc:
            error = PriceError(
                instrument_id=instrument.instrument_id,
                message=exc.message,
                code=exc.code,
                label=instrument.label,
            )
            return PriceResult(
                instrument_id=instrument.instrument_id,
                latency_ms=(time.perf_counter() - started) * 1000,
                error=error,
            )
        except Exception as exc:
            logger.exception("Unexpected error resolving %s", instrument.label)
            error = PriceError(
                instrument_id=instrument.instrument_id,
                message=f"{exc.__class__.__name__}: {exc}",
                code="INTERNAL_ERROR",
                label=instrument.label,
            )
            return PriceResult(
                instrument_id=instrument.instrument_id,
                latency_ms=(time.perf_counter() - started) * 1000,
                error=error,
            )

        return PriceResult(
            instrument_id=instrument.instrument_id,
            latency_ms=(time.perf_counter() - started) * 1000,
            price=priced.price,
            origin=priced.origin,
        )
