"""Finnhub quote adapter (generic ticker aggregator, API key required)."""

import logging
from typing import Optional, Sequence

import httpx

from tradefolio.core.exceptions import ProviderError
from tradefolio.core.timezone import from_timestamp, now_utc
from tradefolio.domain.models import Instrument, Quote
from tradefolio.providers.classification import exchange_suffix, is_crypto, is_isin
from tradefolio.providers.indices import BenchmarkIndex
from tradefolio.providers.quote_provider import (
    HttpQuoteProvider,
    ProviderConfig,
    RateLimiter,
    to_decimal,
)

logger = logging.getLogger(__name__)

FINNHUB_BASE_URL = "https://finnhub.io/api/v1"

# Exchanges not covered by the Finnhub plan in use
UNSUPPORTED_SUFFIXES = frozenset({"IN", "SR", "SZ", "SS"})


class FinnhubQuoteProvider(HttpQuoteProvider):
    """Quotes from Finnhub ``/quote``; ISIN-only instruments are resolved via ``/search``."""

    def __init__(
        self,
        api_key: Optional[str],
        timeout_seconds: float = 5.0,
        rate_limit_per_minute: int = 60,
        client: Optional[httpx.AsyncClient] = None,
        rate_limiter: Optional[RateLimiter] = None,
        base_url: str = FINNHUB_BASE_URL,
    ):
        super().__init__(
            ProviderConfig(
                name="finnhub",
                base_url=base_url,
                api_key=api_key or "",
                timeout_seconds=timeout_seconds,
                rate_limit_per_minute=rate_limit_per_minute,
            ),
            client=client,
            rate_limiter=rate_limiter,
        )
        self._symbol_cache: dict[str, str] = {}

    def supports(self, instrument: Instrument) -> bool:
        if not self.config.api_key or is_crypto(instrument):
            return False
        if instrument.symbol:
            return exchange_suffix(instrument.symbol) not in UNSUPPORTED_SUFFIXES
        return is_isin(instrument.isin)

    async def get_quote(self, instrument: Instrument) -> Quote:
        symbol = instrument.symbol.upper() if instrument.symbol else await self._lookup_symbol(instrument.isin)
        return await self._quote_symbol(symbol, instrument.currency)

    async def get_index_quotes(self, indices: Sequence[BenchmarkIndex]) -> dict[str, Quote]:
        result: dict[str, Quote] = {}
        for index in indices:
            if not index.finnhub_symbol:
                continue
            try:
                result[index.name] = await self._quote_symbol(index.finnhub_symbol, "USD")
            except ProviderError as exc:
                logger.debug("Finnhub index %s unavailable: %s", index.name, exc.message)
        return result

    async def _quote_symbol(self, symbol: str, currency: str) -> Quote:
        data = await self._get_json(
            f"{self.config.base_url}/quote",
            params={"symbol": symbol, "token": self.config.api_key},
        )
        if not isinstance(data, dict):
            raise ProviderError(self.name, f"unexpected response for {symbol}")

        price = to_decimal(data.get("c"))
        if price is None or price <= 0:
            raise ProviderError(self.name, f"no price for {symbol}")

        timestamp = data.get("t")
        as_of = from_timestamp(timestamp) if isinstance(timestamp, (int, float)) and timestamp > 0 else now_utc()
        return Quote(
            price=price,
            currency=currency,
            as_of=as_of,
            source=self.name,
            open=to_decimal(data.get("o")),
            high=to_decimal(data.get("h")),
            low=to_decimal(data.get("l")),
            previous_close=to_decimal(data.get("pc")),
            change=to_decimal(data.get("d")),
            change_percent=to_decimal(data.get("dp")),
        )

    async def _lookup_symbol(self, isin: Optional[str]) -> str:
        if not isin:
            raise ProviderError(self.name, "instrument has no ticker or ISIN")
        isin = isin.upper()
        if isin in self._symbol_cache:
            return self._symbol_cache[isin]

        data = await self._get_json(
            f"{self.config.base_url}/search",
            params={"q": isin, "token": self.config.api_key},
        )
        results = data.get("result") if isinstance(data, dict) else None
        if not results:
            raise ProviderError(self.name, f"no symbol found for {isin}")
        symbol = results[0].get("symbol")
        if not symbol:
            raise ProviderError(self.name, f"no symbol found for {isin}")
        self._symbol_cache[isin] = symbol
        return symbol
