"""
Unit tests for PriceCache.

Tests cover:
- Max-age freshness against the as_of timestamp
- Degradation to miss / no-op when the store fails
- Invalidation
"""

import json
from decimal import Decimal

import pytest

from tradefolio.cache import InMemoryKeyValueStore, PriceCache
from tradefolio.domain.models import CachedPrice

from tests.conftest import FailingKeyValueStore


def make_price(as_of, instrument_id="inst-aapl", price="190.25") -> CachedPrice:
    return CachedPrice(
        instrument_id=instrument_id,
        price=Decimal(price),
        currency="USD",
        as_of=as_of,
        source="primary",
        change_percent=Decimal("-0.42"),
    )


# =============================================================================
# FRESHNESS TESTS
# =============================================================================


class TestFreshness:
    """Tests for max-age checks."""

    @pytest.mark.asyncio
    async def test_entry_within_max_age_is_a_hit(self, kv_store, clock):
        """
        GIVEN a price written at t0
        WHEN it is read at t0+59s with max age 60s
        THEN it is returned unchanged
        """
        cache = PriceCache(kv_store, ttl_seconds=300, clock=clock)
        price = make_price(clock())
        await cache.put(price)

        clock.advance(59)
        cached = await cache.get("inst-aapl", max_age_seconds=60)

        assert cached == price

    @pytest.mark.asyncio
    async def test_entry_older_than_max_age_is_a_miss(self, kv_store, clock):
        """
        GIVEN a price written at t0 and still held by the store
        WHEN it is read at t0+61s with max age 60s
        THEN it is a miss
        """
        cache = PriceCache(kv_store, ttl_seconds=300, clock=clock)
        await cache.put(make_price(clock()))

        clock.advance(61)

        assert await cache.get("inst-aapl", max_age_seconds=60) is None
        assert await cache.get("inst-aapl", max_age_seconds=120) is not None

    @pytest.mark.asyncio
    async def test_missing_key(self, price_cache):
        assert await price_cache.get("unknown", max_age_seconds=60) is None

    @pytest.mark.asyncio
    async def test_decimal_precision_survives(self, kv_store, clock):
        cache = PriceCache(kv_store, clock=clock)
        await cache.put(make_price(clock(), price="0.00012345"))

        cached = await cache.get("inst-aapl", max_age_seconds=60)

        assert cached.price == Decimal("0.00012345")
        assert cached.change_percent == Decimal("-0.42")

    @pytest.mark.asyncio
    async def test_entries_use_ttl_and_prefix(self, clock):
        store = InMemoryKeyValueStore(clock=lambda: 0.0)
        cache = PriceCache(store, ttl_seconds=60, key_prefix="test:", clock=clock)

        await cache.put(make_price(clock()))

        raw = await store.get("test:inst-aapl")
        assert json.loads(raw)["price"] == "190.25"


# =============================================================================
# FAILURE TESTS
# =============================================================================


class TestStoreFailures:
    """Tests for degraded behaviour when the store is unavailable."""

    @pytest.mark.asyncio
    async def test_failing_store_degrades(self, clock):
        """
        GIVEN a store that raises on every call
        WHEN the cache is read, written and invalidated
        THEN reads miss, writes report False and nothing raises
        """
        cache = PriceCache(FailingKeyValueStore(), clock=clock)

        assert await cache.get("inst-aapl", max_age_seconds=60) is None
        assert await cache.put(make_price(clock())) is False
        await cache.invalidate("inst-aapl")

    @pytest.mark.asyncio
    async def test_undecodable_entry_is_a_miss(self, kv_store, clock):
        cache = PriceCache(kv_store, clock=clock)
        await kv_store.set("price:live:inst-aapl", "not json", 60)

        assert await cache.get("inst-aapl", max_age_seconds=60) is None


class TestInvalidate:

    @pytest.mark.asyncio
    async def test_invalidate_removes_entry(self, kv_store, clock):
        cache = PriceCache(kv_store, clock=clock)
        await cache.put(make_price(clock()))

        await cache.invalidate("inst-aapl")

        assert await cache.get("inst-aapl", max_age_seconds=60) is None
