"""Yahoo Finance adapter via yfinance (blocking calls run on a dedicated thread pool)."""

import asyncio
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional, Sequence

from tradefolio.core.exceptions import ProviderError, RateLimitedError
from tradefolio.core.timezone import now_utc
from tradefolio.domain.models import Instrument, Quote
from tradefolio.providers.classification import is_crypto, isin_country
from tradefolio.providers.indices import BenchmarkIndex
from tradefolio.providers.quote_provider import RateLimiter, to_decimal

logger = logging.getLogger(__name__)

YAHOO_ISIN_COUNTRIES = frozenset({"DE", "US", "GB", "FR", "IT", "ES", "NL", "CH", "CA", "AU", "JP"})
_PLAIN_TICKER = re.compile(r"^[A-Z]{1,5}$")
_SUFFIXED_TICKER = re.compile(r"^[A-Z0-9\-]{1,10}\.[A-Z]{1,3}$")
_INDEX_TICKER = re.compile(r"^\^[A-Z0-9]{2,10}$")


# Lazy import so tests can patch before import
def _get_yf():
    import yfinance as yf
    return yf


def _read(fast_info: Any, attribute: str) -> Any:
    """Read one fast_info field; yfinance raises on fields it could not load."""
    try:
        return getattr(fast_info, attribute)
    except (AttributeError, KeyError, TypeError, ValueError):
        return None


class YahooQuoteProvider:
    """
    Quotes from Yahoo Finance (best coverage, no API key).

    Instruments without a ticker are looked up by ISIN, which yfinance
    resolves itself. yfinance calls run on the provider's own bounded
    thread pool, never on the loop's default executor.
    """

    name = "yahoo"

    def __init__(
        self,
        rate_limit_per_minute: int = 100,
        rate_limiter: Optional[RateLimiter] = None,
        max_workers: int = 4,
    ):
        self._rate_limiter = rate_limiter or RateLimiter(rate_limit_per_minute)
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="yfinance")

    def supports(self, instrument: Instrument) -> bool:
        if is_crypto(instrument):
            return False
        symbol = (instrument.symbol or "").upper()
        if symbol and (
            _PLAIN_TICKER.match(symbol)
            or _SUFFIXED_TICKER.match(symbol)
            or _INDEX_TICKER.match(symbol)
        ):
            return True
        return isin_country(instrument.isin) in YAHOO_ISIN_COUNTRIES

    async def get_quote(self, instrument: Instrument) -> Quote:
        symbol = (instrument.symbol or instrument.isin or "").upper()
        if not symbol:
            raise ProviderError(self.name, "instrument has no ticker or ISIN")
        return await self._quote_symbol(symbol, instrument.currency)

    async def get_index_quotes(self, indices: Sequence[BenchmarkIndex]) -> dict[str, Quote]:
        result: dict[str, Quote] = {}
        for index in indices:
            try:
                result[index.name] = await self._quote_symbol(index.yahoo_symbol, None)
            except ProviderError as exc:
                logger.debug("Yahoo index %s unavailable: %s", index.name, exc.message)
        return result

    async def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    async def _quote_symbol(self, symbol: str, currency: Optional[str]) -> Quote:
        if not self._rate_limiter.try_acquire():
            raise RateLimitedError(self.name, self._rate_limiter.limit)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._fetch_sync, symbol, currency)

    def _fetch_sync(self, symbol: str, currency: Optional[str]) -> Quote:
        yf = _get_yf()
        try:
            fast_info = yf.Ticker(symbol).fast_info
        except Exception as exc:
            raise ProviderError(self.name, f"lookup failed for {symbol}: {exc}") from exc

        price = to_decimal(_read(fast_info, "last_price"))
        if price is None or price <= 0:
            raise ProviderError(self.name, f"no price for {symbol}")

        previous_close = to_decimal(_read(fast_info, "previous_close"))
        change = price - previous_close if previous_close else None
        change_percent = change / previous_close * 100 if change is not None else None
        return Quote(
            price=price,
            currency=(_read(fast_info, "currency") or currency or "USD").upper(),
            as_of=now_utc(),
            source=self.name,
            open=to_decimal(_read(fast_info, "open")),
            high=to_decimal(_read(fast_info, "day_high")),
            low=to_decimal(_read(fast_info, "day_low")),
            previous_close=previous_close,
            change=change,
            change_percent=change_percent,
        )
