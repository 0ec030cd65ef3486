"""View models for price resolution, batch fetching and snapshot runs."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from tradefolio.domain.models import CachedPrice, PriceOrigin


@dataclass(frozen=True)
class PriceError:
    """Per-instrument failure returned alongside successful results."""

    instrument_id: str
    message: str
    code: str = "QUOTE_UNAVAILABLE"
    label: Optional[str] = None


@dataclass(frozen=True)
class PricedInstrument:
    """A resolved price tagged with the tier that produced it."""

    price: CachedPrice
    origin: PriceOrigin


@dataclass(frozen=True)
class PriceResult:
    """Outcome of resolving one instrument inside a batch."""

    instrument_id: str
    latency_ms: float
    price: Optional[CachedPrice] = None
    origin: Optional[PriceOrigin] = None
    error: Optional[PriceError] = None

    @property
    def ok(self) -> bool:
        return self.price is not None


@dataclass
class BatchMetrics:
    """Counters and latency statistics for one batch invocation."""

    total: int = 0
    success: int = 0
    failed: int = 0
    cache_hits: int = 0
    provider_calls: int = 0
    store_hits: int = 0
    avg_latency_ms: float = 0.0
    min_latency_ms: float = 0.0
    max_latency_ms: float = 0.0
    duration_ms: float = 0.0

    @property
    def cache_hit_rate(self) -> float:
        """Share of successful resolutions served by the hot cache (0-100)."""
        if self.success == 0:
            return 0.0
        return round(self.cache_hits / self.success * 100, 2)


@dataclass
class BatchResult:
    """Results of a batch fetch keyed by instrument id."""

    results: dict[str, PriceResult] = field(default_factory=dict)
    metrics: BatchMetrics = field(default_factory=BatchMetrics)

    @property
    def prices(self) -> dict[str, CachedPrice]:
        return {key: r.price for key, r in self.results.items() if r.price is not None}

    @property
    def errors(self) -> list[PriceError]:
        return [r.error for r in self.results.values() if r.error is not None]


@dataclass
class LivePricesResult:
    """Response of a live price resolution: partial success is the normal case."""

    prices: dict[str, CachedPrice] = field(default_factory=dict)
    errors: list[PriceError] = field(default_factory=list)
    metrics: BatchMetrics = field(default_factory=BatchMetrics)


@dataclass(frozen=True)
class IndexQuote:
    """Merged value of one named benchmark index."""

    name: str
    symbol: str
    price: Decimal
    change_percent: Optional[Decimal]
    source: str
    as_of: datetime


@dataclass
class CronJobMetrics:
    """Report of one snapshot job run."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    duration_ms: float = 0.0
    total_instruments: int = 0
    processed: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    up_to_date: int = 0
    snapshots_written: int = 0
    batch_count: int = 0
    throttle_count: int = 0
    cache_hits: int = 0
    provider_calls: int = 0
    timed_out: bool = False
    errors: list[PriceError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """A run succeeds only when no instrument failed; skipped work is not a failure."""
        return not self.errors


@dataclass(frozen=True)
class SnapshotStats:
    """Size and time span of the snapshot store."""

    total_snapshots: int
    instrument_count: int
    oldest_snapshot_at: Optional[datetime]
    newest_snapshot_at: Optional[datetime]
