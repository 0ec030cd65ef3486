"""CoinGecko adapter for crypto assets (no API key, tight rate limit)."""

import logging
from typing import Optional

import httpx

from tradefolio.core.exceptions import ProviderError
from tradefolio.core.timezone import from_timestamp, now_utc
from tradefolio.domain.models import Instrument, Quote
from tradefolio.providers.classification import coingecko_id, is_crypto
from tradefolio.providers.quote_provider import (
    HttpQuoteProvider,
    ProviderConfig,
    RateLimiter,
    to_decimal,
)

logger = logging.getLogger(__name__)

COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"


class CoinGeckoQuoteProvider(HttpQuoteProvider):
    """Quotes from ``/simple/price``; several coins are fetched in one request."""

    def __init__(
        self,
        vs_currency: str = "eur",
        timeout_seconds: float = 5.0,
        rate_limit_per_minute: int = 10,
        client: Optional[httpx.AsyncClient] = None,
        rate_limiter: Optional[RateLimiter] = None,
        base_url: str = COINGECKO_BASE_URL,
    ):
        super().__init__(
            ProviderConfig(
                name="coingecko",
                base_url=base_url,
                timeout_seconds=timeout_seconds,
                rate_limit_per_minute=rate_limit_per_minute,
            ),
            client=client,
            rate_limiter=rate_limiter,
        )
        self._vs_currency = vs_currency.lower()

    def supports(self, instrument: Instrument) -> bool:
        return is_crypto(instrument) and coingecko_id(instrument) is not None

    async def get_quote(self, instrument: Instrument) -> Quote:
        quotes = await self.get_quotes([instrument])
        quote = quotes.get(instrument.instrument_id)
        if quote is None:
            raise ProviderError(self.name, f"no price for {instrument.label}")
        return quote

    async def get_quotes(self, instruments: list[Instrument]) -> dict[str, Quote]:
        coins: dict[str, list[str]] = {}
        for instrument in instruments:
            coin = coingecko_id(instrument)
            if coin is None:
                logger.debug("Unknown crypto asset %s", instrument.label)
                continue
            coins.setdefault(coin, []).append(instrument.instrument_id)
        if not coins:
            return {}

        currency = self._vs_currency
        data = await self._get_json(
            f"{self.config.base_url}/simple/price",
            params={
                "ids": ",".join(sorted(coins)),
                "vs_currencies": currency,
                "include_24hr_change": "true",
                "include_last_updated_at": "true",
            },
        )
        if not isinstance(data, dict):
            raise ProviderError(self.name, "unexpected response")

        result: dict[str, Quote] = {}
        for coin, instrument_ids in coins.items():
            entry = data.get(coin) or {}
            price = to_decimal(entry.get(currency))
            if price is None or price <= 0:
                continue
            updated = entry.get("last_updated_at")
            quote = Quote(
                price=price,
                currency=currency.upper(),
                as_of=from_timestamp(updated) if isinstance(updated, (int, float)) else now_utc(),
                source=self.name,
                change_percent=to_decimal(entry.get(f"{currency}_24h_change")),
            )
            for instrument_id in instrument_ids:
                result[instrument_id] = quote
        return result
