"""Waterfall resolver: ordered provider fallback and benchmark index merge."""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Mapping, Optional, Sequence

from tradefolio.core.exceptions import ProviderError, QuoteUnavailableError, ValidationError
from tradefolio.core.timezone import now_utc, to_utc
from tradefolio.domain.models import CachedPrice, Instrument, InstrumentKind, Quote
from tradefolio.domain.views import IndexQuote
from tradefolio.providers.classification import classify_instrument
from tradefolio.providers.indices import BenchmarkIndex, INDEX_CATALOG
from tradefolio.providers.quote_provider import BatchQuoteProvider, IndexQuoteProvider, QuoteProvider

logger = logging.getLogger(__name__)


class WaterfallResolver:
    """
    Resolves a current price by trying providers strictly in order.

    The chain is chosen by instrument classification. The first quote with a
    positive price and an acceptable timestamp wins; errors, timeouts and
    invalid quotes fall through to the next provider.
    """

    def __init__(
        self,
        chains: Mapping[InstrumentKind, Sequence[QuoteProvider]],
        index_providers: Sequence[IndexQuoteProvider] = (),
        timeout_seconds: float = 5.0,
        max_quote_age_seconds: float = 5 * 24 * 3600,
        clock_skew_seconds: float = 300,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._chains = {kind: list(providers) for kind, providers in chains.items()}
        self._index_providers = list(index_providers)
        self._timeout = timeout_seconds
        self._max_quote_age = max_quote_age_seconds
        self._clock_skew = clock_skew_seconds
        self._clock = clock

    def providers_for(self, instrument: Instrument) -> list[QuoteProvider]:
        """
        Provider chain for an instrument, in priority order.

        Raises:
            ValidationError: the instrument identifiers are malformed.
        """
        kind = classify_instrument(instrument)
        return [p for p in self._chains.get(kind, []) if p.supports(instrument)]

    async def resolve(self, instrument: Instrument) -> CachedPrice:
        """
        Resolve one instrument.

        Raises:
            ValidationError: malformed identifiers.
            QuoteUnavailableError: every provider in the chain failed.
        """
        attempts: list[tuple[str, str]] = []
        for provider in self.providers_for(instrument):
            reason = None
            try:
                quote = await asyncio.wait_for(provider.get_quote(instrument), timeout=self._timeout)
            except asyncio.TimeoutError:
                reason = f"timed out after {self._timeout:g}s"
            except ProviderError as exc:
                reason = exc.message
            except Exception as exc:
                logger.warning(
                    "Provider %s raised unexpectedly for %s", provider.name, instrument.label, exc_info=True
                )
                reason = f"{exc.__class__.__name__}: {exc}"
            else:
                reason = self._reject_reason(quote)
                if reason is None:
                    logger.debug("Resolved %s via %s", instrument.label, provider.name)
                    return CachedPrice.from_quote(instrument.instrument_id, quote).with_source(provider.name)

            logger.debug("Provider %s failed for %s: %s", provider.name, instrument.label, reason)
            attempts.append((provider.name, reason))

        raise QuoteUnavailableError(instrument.instrument_id, attempts)

    def batch_groups(self, instruments: Sequence[Instrument]) -> list[tuple[BatchQuoteProvider, list[Instrument]]]:
        """
        Group instruments whose first supporting provider quotes in bulk.

        Malformed instruments are left out; resolving them one by one reports
        the error.
        """
        groups: dict[int, tuple[BatchQuoteProvider, list[Instrument]]] = {}
        for instrument in instruments:
            try:
                chain = self.providers_for(instrument)
            except ValidationError:
                continue
            if chain and isinstance(chain[0], BatchQuoteProvider):
                groups.setdefault(id(chain[0]), (chain[0], []))[1].append(instrument)
        return list(groups.values())

    async def resolve_batch(
        self,
        provider: BatchQuoteProvider,
        instruments: list[Instrument],
    ) -> dict[str, CachedPrice]:
        """
        Quote several instruments with one provider request.

        Only acceptable quotes are returned. A failed request returns nothing
        and leaves every instrument to the per-instrument waterfall.
        """
        try:
            quotes = await asyncio.wait_for(provider.get_quotes(instruments), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.debug("Batch quote from %s timed out for %d instruments", provider.name, len(instruments))
            return {}
        except ProviderError as exc:
            logger.debug("Batch quote from %s failed: %s", provider.name, exc.message)
            return {}
        except Exception:
            logger.warning("Batch quote from %s raised unexpectedly", provider.name, exc_info=True)
            return {}

        prices: dict[str, CachedPrice] = {}
        for instrument in instruments:
            quote = quotes.get(instrument.instrument_id)
            if quote is None or self._reject_reason(quote) is not None:
                continue
            prices[instrument.instrument_id] = CachedPrice.from_quote(instrument.instrument_id, quote).with_source(
                provider.name
            )
        logger.debug("Batch quote from %s: %d/%d priced", provider.name, len(prices), len(instruments))
        return prices

    def _reject_reason(self, quote: Quote) -> Optional[str]:
        """Why a quote is unusable, or None when it is acceptable."""
        if quote.price is None or quote.price <= 0:
            return f"invalid price {quote.price}"
        age = (self._clock() - to_utc(quote.as_of)).total_seconds()
        if age > self._max_quote_age:
            return f"stale quote ({int(age)}s old)"
        if age < -self._clock_skew:
            return "quote timestamp in the future"
        return None

    async def get_indices(self, catalog: Sequence[BenchmarkIndex] = INDEX_CATALOG) -> list[IndexQuote]:
        """
        Merge benchmark index quotes from all index providers.

        Providers are queried concurrently; for each named index the
        highest-priority provider with a positive value wins, regardless of
        which response arrived first. Output follows the catalog order.
        """
        responses = await asyncio.gather(
            *(
                asyncio.wait_for(provider.get_index_quotes(catalog), timeout=self._timeout * 2)
                for provider in self._index_providers
            ),
            return_exceptions=True,
        )

        by_provider: list[dict[str, Quote]] = []
        for provider, response in zip(self._index_providers, responses):
            if isinstance(response, BaseException):
                logger.warning("Index fetch from %s failed: %r", provider.name, response)
                by_provider.append({})
            else:
                by_provider.append(response)

        merged: list[IndexQuote] = []
        for index in catalog:
            for quotes in by_provider:
                quote = quotes.get(index.name)
                if quote is not None and quote.price > 0:
                    merged.append(
                        IndexQuote(
                            name=index.name,
                            symbol=index.yahoo_symbol,
                            price=quote.price,
                            change_percent=quote.change_percent,
                            source=quote.source,
                            as_of=quote.as_of,
                        )
                    )
                    break
        return merged
