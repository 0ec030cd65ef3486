"""Stub quote provider for offline/testing use."""

import random
from decimal import Decimal
from typing import Sequence

from tradefolio.core.timezone import now_utc
from tradefolio.domain.models import Instrument, Quote
from tradefolio.providers.indices import BenchmarkIndex


# Deterministic fake prices (last, previous close) for common tickers
_STUB_PRICES: dict[str, tuple[Decimal, Decimal]] = {
    "AAPL": (Decimal("185.50"), Decimal("184.25")),
    "MSFT": (Decimal("378.25"), Decimal("376.80")),
    "NVDA": (Decimal("485.25"), Decimal("482.50")),
    "SAP": (Decimal("172.40"), Decimal("171.10")),
    "SIE": (Decimal("168.90"), Decimal("169.75")),
    "ALV": (Decimal("251.30"), Decimal("250.60")),
    "BTC": (Decimal("61250.00"), Decimal("60480.00")),
    "ETH": (Decimal("3120.50"), Decimal("3098.20")),
}

_STUB_INDEX_LEVELS: dict[str, Decimal] = {
    "S&P 500": Decimal("5800"),
    "Nasdaq 100": Decimal("20500"),
    "DAX 40": Decimal("21000"),
    "Euro Stoxx 50": Decimal("5200"),
}


class StubQuoteProvider:
    """
    Stub provider with deterministic fake data for offline operation.

    Uses predefined prices for known tickers; unknown instruments get a
    seeded pseudo-random price that stays fixed for the provider's lifetime.
    """

    name = "stub"

    def __init__(self, seed: int = 42):
        """Initialize with optional random seed for reproducibility."""
        self._rng = random.Random(seed)
        self._generated: dict[str, tuple[Decimal, Decimal]] = {}

    def supports(self, instrument: Instrument) -> bool:
        return True

    async def get_quote(self, instrument: Instrument) -> Quote:
        key = (instrument.symbol or instrument.isin or instrument.instrument_id).upper()
        last_price, prev_close = self._prices_for(key)
        change = last_price - prev_close
        return Quote(
            price=last_price,
            currency=instrument.currency,
            as_of=now_utc(),
            source=self.name,
            previous_close=prev_close,
            change=change,
            change_percent=(change / prev_close * 100).quantize(Decimal("0.01")),
        )

    async def get_index_quotes(self, indices: Sequence[BenchmarkIndex]) -> dict[str, Quote]:
        as_of = now_utc()
        return {
            index.name: Quote(
                price=_STUB_INDEX_LEVELS[index.name],
                currency="USD",
                as_of=as_of,
                source=self.name,
            )
            for index in indices
            if index.name in _STUB_INDEX_LEVELS
        }

    async def close(self) -> None:
        return None

    def _prices_for(self, key: str) -> tuple[Decimal, Decimal]:
        base = key.split(".")[0]
        if base in _STUB_PRICES:
            return _STUB_PRICES[base]
        if key not in self._generated:
            last_price = Decimal(str(50 + self._rng.random() * 200)).quantize(Decimal("0.01"))
            change_pct = Decimal(str((self._rng.random() - 0.5) * 0.04))
            prev_close = (last_price / (1 + change_pct)).quantize(Decimal("0.01"))
            self._generated[key] = (last_price, prev_close)
        return self._generated[key]
