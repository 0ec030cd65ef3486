"""Tier-1 price cache on top of a KeyValueStore."""

import json
import logging
from datetime import datetime
from decimal import InvalidOperation
from typing import Callable, Optional

from tradefolio.cache.kv_store import KeyValueStore
from tradefolio.core.exceptions import CacheError
from tradefolio.core.timezone import now_utc
from tradefolio.domain.models import CachedPrice

logger = logging.getLogger(__name__)


class PriceCache:
    """
    Best-effort cache of resolved prices keyed by instrument id.

    Every failure of the underlying store is logged and turned into a miss
    (reads) or a no-op (writes); nothing here raises to the caller.
    Entries older than the caller's max age are misses even if the store
    still holds them.
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: int = 60,
        key_prefix: str = "price:live:",
        clock: Callable[[], datetime] = now_utc,
    ):
        self._store = store
        self._ttl = ttl_seconds
        self._prefix = key_prefix
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def _key(self, instrument_id: str) -> str:
        return f"{self._prefix}{instrument_id}"

    async def get(self, instrument_id: str, max_age_seconds: int) -> Optional[CachedPrice]:
        """Return the cached price if present and ``now - as_of <= max_age_seconds``."""
        try:
            raw = await self._store.get(self._key(instrument_id))
        except CacheError as exc:
            logger.warning("Cache read failed for %s: %s", instrument_id, exc.message)
            return None
        if raw is None:
            return None

        try:
            price = CachedPrice.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError, InvalidOperation) as exc:
            logger.warning("Discarding undecodable cache entry for %s: %s", instrument_id, exc)
            return None

        if price.age_seconds(self._clock()) > max_age_seconds:
            return None
        return price

    async def put(self, price: CachedPrice) -> bool:
        """Store a price under its instrument key. Returns False if the write failed."""
        try:
            await self._store.set(
                self._key(price.instrument_id),
                json.dumps(price.to_dict()),
                self._ttl,
            )
        except CacheError as exc:
            logger.warning("Cache write failed for %s: %s", price.instrument_id, exc.message)
            return False
        return True

    async def invalidate(self, instrument_id: str) -> None:
        try:
            await self._store.delete(self._key(instrument_id))
        except CacheError as exc:
            logger.warning("Cache delete failed for %s: %s", instrument_id, exc.message)
