"""Live price resolution for a list of instrument ids, and benchmark indices."""

import asyncio
import logging
from typing import Optional

from tradefolio.core.exceptions import ValidationError
from tradefolio.domain.views import IndexQuote, LivePricesResult, PriceError
from tradefolio.repositories.protocols import InstrumentRepository
from tradefolio.services.batch_fetcher import BatchFetcher
from tradefolio.services.waterfall_resolver import WaterfallResolver

logger = logging.getLogger(__name__)


class LivePriceService:
    """
    Resolves current prices for the UI.

    Partial success is the normal case: unknown ids and unresolvable
    instruments become per-instrument errors. Nothing is written to the
    snapshot store.
    """

    def __init__(
        self,
        instrument_repo: InstrumentRepository,
        batch_fetcher: BatchFetcher,
        default_max_age_seconds: int = 60,
    ):
        self._instrument_repo = instrument_repo
        self._batch_fetcher = batch_fetcher
        self._default_max_age = default_max_age_seconds

    async def resolve_prices(
        self,
        instrument_ids: list[str],
        max_age_seconds: Optional[int] = None,
        force_fresh: bool = False,
    ) -> LivePricesResult:
        """
        Resolve live prices for ``instrument_ids``.

        Raises:
            ValidationError: more distinct ids than the batch limit, or a
                negative max age.
        """
        unique = list(dict.fromkeys(i.strip() for i in instrument_ids if i and i.strip()))
        if not unique:
            return LivePricesResult()
        if len(unique) > self._batch_fetcher.max_instruments:
            raise ValidationError(
                f"At most {self._batch_fetcher.max_instruments} instruments per request, got {len(unique)}"
            )
        max_age = self._default_max_age if max_age_seconds is None else max_age_seconds
        if max_age < 0:
            raise ValidationError("max_age_seconds cannot be negative")

        directory = await asyncio.to_thread(self._instrument_repo.get_many, unique)
        missing = [i for i in unique if i not in directory]
        instruments = [directory[i] for i in unique if i in directory]

        batch = await self._batch_fetcher.fetch_batch(
            instruments, max_age_seconds=max_age, force_fresh=force_fresh
        )

        errors = [
            PriceError(instrument_id=i, message=f"Instrument not found: {i}", code="NOT_FOUND")
            for i in missing
        ]
        errors.extend(batch.errors)

        metrics = batch.metrics
        metrics.total += len(missing)
        metrics.failed += len(missing)

        if errors:
            logger.info("Live prices: %d resolved, %d errors", len(batch.prices), len(errors))
        return LivePricesResult(prices=batch.prices, errors=errors, metrics=metrics)


class IndexService:
    """Benchmark index values merged across providers."""

    def __init__(self, resolver: WaterfallResolver):
        self._resolver = resolver

    async def get_indices(self) -> list[IndexQuote]:
        return await self._resolver.get_indices()
