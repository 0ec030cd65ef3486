"""ING instrument-header adapter: domestic exchange feed keyed by ISIN."""

from decimal import Decimal
from typing import Any, Optional

import httpx

from tradefolio.core.exceptions import ProviderError
from tradefolio.core.timezone import now_utc
from tradefolio.domain.models import Instrument, Quote
from tradefolio.providers.classification import DOMESTIC_ISIN_COUNTRIES, isin_country
from tradefolio.providers.quote_provider import (
    HttpQuoteProvider,
    ProviderConfig,
    RateLimiter,
    to_decimal,
)

ING_BASE_URL = "https://component-api.wertpapiere.ing.de/api/v1/components/instrumentheader"

_HEADERS = {
    "Accept": "application/json",
    "Origin": "https://wertpapiere.ing.de",
    "Referer": "https://wertpapiere.ing.de/",
}


def extract_price(data: dict[str, Any]) -> Optional[Decimal]:
    """Last price, else the bid/ask midpoint, else bid, else ask."""
    price = to_decimal(data.get("price"))
    if price is not None and price > 0:
        return price

    bid = to_decimal(data.get("bid"))
    ask = to_decimal(data.get("ask"))
    if bid is not None and ask is not None and bid > 0 and ask > 0:
        return (bid + ask) / 2
    if bid is not None and bid > 0:
        return bid
    if ask is not None and ask > 0:
        return ask
    return None


class IngQuoteProvider(HttpQuoteProvider):
    """Quotes for ISINs listed on the domestic exchanges (no batch endpoint)."""

    def __init__(
        self,
        timeout_seconds: float = 5.0,
        rate_limit_per_minute: int = 50,
        client: Optional[httpx.AsyncClient] = None,
        rate_limiter: Optional[RateLimiter] = None,
        base_url: str = ING_BASE_URL,
    ):
        super().__init__(
            ProviderConfig(
                name="ing",
                base_url=base_url,
                timeout_seconds=timeout_seconds,
                rate_limit_per_minute=rate_limit_per_minute,
            ),
            client=client or httpx.AsyncClient(timeout=timeout_seconds, headers=_HEADERS),
            rate_limiter=rate_limiter,
        )

    def supports(self, instrument: Instrument) -> bool:
        return isin_country(instrument.isin) in DOMESTIC_ISIN_COUNTRIES

    async def get_quote(self, instrument: Instrument) -> Quote:
        isin = (instrument.isin or "").upper()
        data = await self._get_json(f"{self.config.base_url}/{isin}")
        if not isinstance(data, dict):
            raise ProviderError(self.name, f"unexpected response for {isin}")

        price = extract_price(data)
        if price is None:
            raise ProviderError(self.name, f"no price data for {isin}")

        return Quote(
            price=price,
            currency=data.get("currency") or "EUR",
            as_of=now_utc(),
            source=self.name,
            change=to_decimal(data.get("changeAbsolute")),
            change_percent=to_decimal(data.get("changePercent")),
        )
