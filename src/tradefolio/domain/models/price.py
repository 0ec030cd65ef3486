"""Price models: provider quotes, cached prices and durable snapshots."""

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from tradefolio.core.timezone import parse_datetime_utc, to_utc


_OPTIONAL_DECIMALS = ("open", "high", "low", "previous_close", "change", "change_percent")


@dataclass(frozen=True)
class Quote:
    """Quote as returned by a single provider adapter."""

    price: Decimal
    currency: str
    as_of: datetime
    source: str
    open: Optional[Decimal] = None
    high: Optional[Decimal] = None
    low: Optional[Decimal] = None
    previous_close: Optional[Decimal] = None
    change: Optional[Decimal] = None
    change_percent: Optional[Decimal] = None


@dataclass(frozen=True)
class CachedPrice:
    """
    Resolved price for one instrument.

    Created on a successful provider fetch, time-boxed by the hot cache TTL and
    superseded by any fresher fetch. Never written to durable storage by the cache.
    """

    instrument_id: str
    price: Decimal
    currency: str
    as_of: datetime
    source: str
    open: Optional[Decimal] = None
    high: Optional[Decimal] = None
    low: Optional[Decimal] = None
    previous_close: Optional[Decimal] = None
    change: Optional[Decimal] = None
    change_percent: Optional[Decimal] = None

    @classmethod
    def from_quote(cls, instrument_id: str, quote: Quote) -> "CachedPrice":
        """Attach an instrument key to a provider quote."""
        return cls(
            instrument_id=instrument_id,
            price=quote.price,
            currency=quote.currency,
            as_of=quote.as_of,
            source=quote.source,
            open=quote.open,
            high=quote.high,
            low=quote.low,
            previous_close=quote.previous_close,
            change=quote.change,
            change_percent=quote.change_percent,
        )

    def age_seconds(self, now: datetime) -> float:
        """Seconds elapsed between ``as_of`` and ``now``."""
        return (to_utc(now) - to_utc(self.as_of)).total_seconds()

    def with_source(self, source: str) -> "CachedPrice":
        return replace(self, source=source)

    def to_dict(self) -> dict[str, Any]:
        """Serialize with decimal strings so values survive JSON round trips exactly."""
        data: dict[str, Any] = {
            "instrument_id": self.instrument_id,
            "price": str(self.price),
            "currency": self.currency,
            "as_of": to_utc(self.as_of).isoformat(),
            "source": self.source,
        }
        for name in _OPTIONAL_DECIMALS:
            value = getattr(self, name)
            data[name] = str(value) if value is not None else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CachedPrice":
        optional = {
            name: Decimal(data[name]) if data.get(name) is not None else None
            for name in _OPTIONAL_DECIMALS
        }
        return cls(
            instrument_id=data["instrument_id"],
            price=Decimal(data["price"]),
            currency=data["currency"],
            as_of=parse_datetime_utc(data["as_of"]),
            source=data["source"],
            **optional,
        )


@dataclass(frozen=True)
class PriceSnapshot:
    """Durable, append-only historical price point. Written only by the snapshot job."""

    instrument_id: str
    price: Decimal
    currency: str
    source: str
    snapshot_at: datetime
    snapshot_id: Optional[int] = None

    @classmethod
    def from_price(cls, price: CachedPrice, snapshot_at: datetime) -> "PriceSnapshot":
        return cls(
            instrument_id=price.instrument_id,
            price=price.price,
            currency=price.currency,
            source=price.source,
            snapshot_at=snapshot_at,
        )

    def to_cached_price(self) -> CachedPrice:
        """Expose a stored snapshot through the cache-level price type."""
        return CachedPrice(
            instrument_id=self.instrument_id,
            price=self.price,
            currency=self.currency,
            as_of=self.snapshot_at,
            source=self.source,
        )
