"""Hot price cache: key-value stores and the price cache on top of them."""

from tradefolio.cache.kv_store import (
    KeyValueStore,
    InMemoryKeyValueStore,
    RedisKeyValueStore,
    build_store,
)
from tradefolio.cache.price_cache import PriceCache

__all__ = [
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "RedisKeyValueStore",
    "build_store",
    "PriceCache",
]
