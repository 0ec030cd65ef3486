"""Read-through price resolution over the hot cache, providers and snapshot store."""

import asyncio
import logging
from typing import Optional, Sequence

from tradefolio.cache.price_cache import PriceCache
from tradefolio.core.exceptions import QuoteUnavailableError
from tradefolio.domain.models import CachedPrice, Instrument, PriceOrigin
from tradefolio.domain.views import PricedInstrument
from tradefolio.repositories.protocols import SnapshotRepository
from tradefolio.services.waterfall_resolver import WaterfallResolver

logger = logging.getLogger(__name__)


class PriceService:
    """
    Tiered price lookup.

    1. Hot cache, unless a fresh fetch is forced.
    2. Provider waterfall; the result is written back to the cache in a
       detached task whose outcome is only logged.
    3. Optionally the latest durable snapshot when every provider failed.

    Every result is tagged with the tier that produced it.
    """

    def __init__(self, cache: PriceCache, resolver: WaterfallResolver):
        self._cache = cache
        self._resolver = resolver
        self._pending_writes: set[asyncio.Task] = set()
        self._store_lock: Optional[asyncio.Lock] = None

    @property
    def resolver(self) -> WaterfallResolver:
        return self._resolver

    async def get_price(
        self,
        instrument: Instrument,
        max_age_seconds: int,
        force_fresh: bool = False,
        fallback_store: Optional[SnapshotRepository] = None,
        prefetched: Optional[CachedPrice] = None,
    ) -> PricedInstrument:
        """
        Resolve the current price of one instrument.

        ``prefetched`` is a price already obtained by a bulk provider request
        (see ``prefetch``) and is returned as a provider result.

        Raises:
            ValidationError: the instrument identifiers are malformed.
            QuoteUnavailableError: no provider (and no stored snapshot, when a
                fallback store is given) produced a price.
        """
        if prefetched is not None:
            return PricedInstrument(price=prefetched, origin=PriceOrigin.PROVIDER)

        if not force_fresh:
            cached = await self._cache.get(instrument.instrument_id, max_age_seconds)
            if cached is not None:
                return PricedInstrument(price=cached, origin=PriceOrigin.CACHE)

        try:
            price = await self._resolver.resolve(instrument)
        except QuoteUnavailableError:
            stored = await self._latest_snapshot(instrument, fallback_store)
            if stored is None:
                raise
            logger.info("Using stored snapshot for %s from %s", instrument.label, stored.as_of.isoformat())
            return PricedInstrument(price=stored, origin=PriceOrigin.STORE)

        self._schedule_write(price)
        return PricedInstrument(price=price, origin=PriceOrigin.PROVIDER)

    async def prefetch(
        self,
        instruments: Sequence[Instrument],
        max_age_seconds: int,
        force_fresh: bool = False,
    ) -> dict[str, CachedPrice]:
        """
        Bulk-quote cache misses that share a batch-capable first provider.

        Groups with fewer than two misses are left to ``get_price``. Prices
        obtained here are written back to the cache like any provider result.
        """
        prices: dict[str, CachedPrice] = {}
        for provider, members in self._resolver.batch_groups(instruments):
            if not force_fresh:
                hits = await asyncio.gather(
                    *(self._cache.get(i.instrument_id, max_age_seconds) for i in members)
                )
                members = [i for i, hit in zip(members, hits) if hit is None]
            if len(members) < 2:
                continue
            batch = await self._resolver.resolve_batch(provider, members)
            for price in batch.values():
                self._schedule_write(price)
            prices.update(batch)
        return prices

    async def drain(self) -> None:
        """Wait for outstanding cache write-backs (shutdown and tests)."""
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)

    def _schedule_write(self, price: CachedPrice) -> None:
        task = asyncio.create_task(self._cache.put(price))
        self._pending_writes.add(task)
        task.add_done_callback(self._on_write_done)

    def _on_write_done(self, task: asyncio.Task) -> None:
        self._pending_writes.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Cache write-back failed: %r", exc)

    async def _latest_snapshot(
        self,
        instrument: Instrument,
        store: Optional[SnapshotRepository],
    ) -> Optional[CachedPrice]:
        if store is None:
            return None
        if self._store_lock is None:
            self._store_lock = asyncio.Lock()
        # Repository sessions are not safe for concurrent use
        async with self._store_lock:
            snapshot = await asyncio.to_thread(store.latest, instrument.instrument_id)
        return snapshot.to_cached_price() if snapshot else None
