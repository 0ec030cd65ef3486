"""Quote provider adapters."""

from tradefolio.providers.quote_provider import (
    QuoteProvider,
    BatchQuoteProvider,
    IndexQuoteProvider,
    RateLimiter,
)
from tradefolio.providers.indices import BenchmarkIndex, INDEX_CATALOG
from tradefolio.providers.finnhub_provider import FinnhubQuoteProvider
from tradefolio.providers.yahoo_provider import YahooQuoteProvider
from tradefolio.providers.ing_provider import IngQuoteProvider
from tradefolio.providers.coingecko_provider import CoinGeckoQuoteProvider
from tradefolio.providers.stub_provider import StubQuoteProvider

__all__ = [
    "QuoteProvider",
    "BatchQuoteProvider",
    "IndexQuoteProvider",
    "RateLimiter",
    "BenchmarkIndex",
    "INDEX_CATALOG",
    "FinnhubQuoteProvider",
    "YahooQuoteProvider",
    "IngQuoteProvider",
    "CoinGeckoQuoteProvider",
    "StubQuoteProvider",
]
