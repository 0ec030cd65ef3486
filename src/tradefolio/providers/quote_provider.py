"""Quote provider protocol and shared adapter plumbing."""

import asyncio
import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional, Protocol, Sequence, runtime_checkable

import httpx

from tradefolio.core.exceptions import ProviderError, RateLimitedError
from tradefolio.domain.models import Instrument, Quote
from tradefolio.providers.indices import BenchmarkIndex


@runtime_checkable
class QuoteProvider(Protocol):
    """
    Protocol for quote provider adapters.

    ``get_quote`` returns a Quote or raises ProviderError; providers never
    return partial or zero-priced quotes silently.
    """

    name: str

    def supports(self, instrument: Instrument) -> bool:
        """Whether this source can quote the instrument at all."""
        ...

    async def get_quote(self, instrument: Instrument) -> Quote:
        """Fetch one quote."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...


@runtime_checkable
class BatchQuoteProvider(QuoteProvider, Protocol):
    """Provider that can quote several instruments in one request."""

    async def get_quotes(self, instruments: list[Instrument]) -> dict[str, Quote]:
        """Fetch quotes keyed by instrument id; instruments without a quote are omitted."""
        ...


@runtime_checkable
class IndexQuoteProvider(Protocol):
    """Provider that can quote named benchmark indices."""

    name: str

    async def get_index_quotes(self, indices: Sequence[BenchmarkIndex]) -> dict[str, Quote]:
        """Fetch quotes for the indices this provider covers, keyed by index name."""
        ...


class RateLimiter:
    """
    Fixed one-minute window request budget for a single provider.

    Not shared across processes; each worker enforces its own budget.
    """

    def __init__(self, limit_per_minute: int, clock: Callable[[], float] = time.monotonic):
        self._limit = limit_per_minute
        self._clock = clock
        self._window_start = clock()
        self._count = 0

    @property
    def limit(self) -> int:
        return self._limit

    def try_acquire(self) -> bool:
        """Consume one request from the budget; False when exhausted."""
        now = self._clock()
        if now - self._window_start >= 60:
            self._window_start = now
            self._count = 0
        if self._count >= self._limit:
            return False
        self._count += 1
        return True


@dataclass(frozen=True)
class ProviderConfig:
    name: str
    base_url: str
    api_key: str = ""
    timeout_seconds: float = 5.0
    max_retries: int = 1
    rate_limit_per_minute: int = 60


def should_retry(status_code: int) -> bool:
    return status_code in {408, 425, 429, 500, 502, 503, 504}


def to_decimal(value: Any) -> Optional[Decimal]:
    """Convert a JSON number to Decimal via its string form; None for missing or non-numeric values."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


class HttpQuoteProvider:
    """Base class for JSON-over-HTTP providers built on httpx.AsyncClient."""

    def __init__(
        self,
        config: ProviderConfig,
        client: Optional[httpx.AsyncClient] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.config = config
        self.name = config.name
        self._client = client or httpx.AsyncClient(timeout=config.timeout_seconds)
        self._rate_limiter = rate_limiter or RateLimiter(config.rate_limit_per_minute)

    async def _get_json(self, url: str, params: Optional[dict[str, Any]] = None) -> Any:
        """
        GET a JSON document, retrying transient statuses.

        Raises:
            RateLimitedError: the local per-minute budget is exhausted.
            ProviderError: network failure, non-2xx response or invalid JSON.
        """
        last_error: Optional[str] = None
        for attempt in range(self.config.max_retries + 1):
            if not self._rate_limiter.try_acquire():
                raise RateLimitedError(self.name, self._rate_limiter.limit)
            try:
                response = await self._client.get(url, params=params)
            except httpx.HTTPError as exc:
                last_error = f"request failed: {exc.__class__.__name__}"
            else:
                if should_retry(response.status_code):
                    last_error = f"HTTP {response.status_code}"
                elif response.is_error:
                    raise ProviderError(self.name, f"HTTP {response.status_code}")
                else:
                    try:
                        return response.json()
                    except ValueError as exc:
                        raise ProviderError(self.name, "invalid JSON response") from exc
            if attempt < self.config.max_retries:
                await asyncio.sleep(0.25 * (attempt + 1))
        raise ProviderError(self.name, last_error or "request failed", retryable=True)

    async def close(self) -> None:
        await self._client.aclose()
