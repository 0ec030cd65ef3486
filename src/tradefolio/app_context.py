"""Application context: process-wide pricing components and service factories.

Provider clients, the hot cache and the resolver live for the whole
process. Repositories are bound to a database session, so the services
using them are created per request (or per scheduled run).
"""

import logging
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from tradefolio.cache import KeyValueStore, PriceCache, build_store
from tradefolio.config.settings import Settings, get_settings
from tradefolio.domain.models import InstrumentKind
from tradefolio.domain.views import CronJobMetrics
from tradefolio.providers import (
    CoinGeckoQuoteProvider,
    FinnhubQuoteProvider,
    IndexQuoteProvider,
    IngQuoteProvider,
    QuoteProvider,
    StubQuoteProvider,
    YahooQuoteProvider,
)
from tradefolio.repositories.sqlalchemy import (
    SqlAlchemyInstrumentRepository,
    SqlAlchemySnapshotRepository,
    SqlAlchemyTradeRepository,
    session_scope,
)
from tradefolio.services import (
    BatchFetcher,
    IndexService,
    LedgerService,
    LivePriceService,
    PortfolioService,
    PriceService,
    SnapshotJob,
    SnapshotService,
    WaterfallResolver,
    build_scheduler,
)

logger = logging.getLogger(__name__)

ProviderChains = dict[InstrumentKind, list[QuoteProvider]]


def build_provider_chains(settings: Settings) -> tuple[ProviderChains, list[IndexQuoteProvider]]:
    """
    Provider waterfall per instrument kind, plus index providers in priority order.

    With ``use_stub_provider`` every chain is the offline stub.
    """
    if settings.use_stub_provider:
        stub = StubQuoteProvider()
        return {kind: [stub] for kind in InstrumentKind}, [stub]

    limits = settings.rate_limits()
    timeout = settings.provider_timeout_seconds
    yahoo = YahooQuoteProvider(
        rate_limit_per_minute=limits["yahoo"],
        max_workers=settings.yahoo_max_workers,
    )
    finnhub = FinnhubQuoteProvider(
        api_key=settings.finnhub_api_key,
        timeout_seconds=timeout,
        rate_limit_per_minute=limits["finnhub"],
    )
    ing = IngQuoteProvider(timeout_seconds=timeout, rate_limit_per_minute=limits["ing"])
    coingecko = CoinGeckoQuoteProvider(
        vs_currency=settings.coingecko_vs_currency,
        timeout_seconds=timeout,
        rate_limit_per_minute=limits["coingecko"],
    )

    chains: ProviderChains = {
        InstrumentKind.CRYPTO: [coingecko],
        InstrumentKind.DOMESTIC: [ing, yahoo, finnhub],
        InstrumentKind.GENERIC: [yahoo, finnhub],
    }
    index_providers: list[IndexQuoteProvider] = [yahoo]
    if settings.finnhub_api_key:
        index_providers.append(finnhub)
    return chains, index_providers


class AppContext:
    """Composition root shared by the HTTP layer and the scheduler."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[KeyValueStore] = None,
        chains: Optional[ProviderChains] = None,
        index_providers: Optional[Sequence[IndexQuoteProvider]] = None,
    ):
        self._settings = settings or get_settings()
        s = self._settings

        if chains is None:
            chains, default_index_providers = build_provider_chains(s)
            if index_providers is None:
                index_providers = default_index_providers
        index_providers = list(index_providers or [])

        self._store = store or build_store(s.redis_url)
        self._providers = self._unique_providers(chains, index_providers)

        self.cache = PriceCache(self._store, ttl_seconds=s.cache_ttl_seconds, key_prefix=s.cache_key_prefix)
        self.resolver = WaterfallResolver(
            chains,
            index_providers=index_providers,
            timeout_seconds=s.provider_timeout_seconds,
            max_quote_age_seconds=s.provider_max_quote_age_seconds,
            clock_skew_seconds=s.provider_clock_skew_seconds,
        )
        self.price_service = PriceService(self.cache, self.resolver)
        self.batch_fetcher = BatchFetcher(
            self.price_service,
            max_concurrent=s.batch_max_concurrent,
            max_instruments=s.batch_max_instruments,
        )
        self._scheduler = None

    @property
    def settings(self) -> Settings:
        return self._settings

    # Session-bound services
    def ledger(self, session: Session) -> LedgerService:
        return LedgerService(
            trade_repo=SqlAlchemyTradeRepository(session),
            instrument_repo=SqlAlchemyInstrumentRepository(session),
        )

    def portfolio(self, session: Session) -> PortfolioService:
        return PortfolioService(
            trade_repo=SqlAlchemyTradeRepository(session),
            instrument_repo=SqlAlchemyInstrumentRepository(session),
            snapshot_repo=SqlAlchemySnapshotRepository(session),
            batch_fetcher=self.batch_fetcher,
            max_age_seconds=self._settings.live_max_age_seconds,
        )

    def live_prices(self, session: Session) -> LivePriceService:
        return LivePriceService(
            instrument_repo=SqlAlchemyInstrumentRepository(session),
            batch_fetcher=self.batch_fetcher,
            default_max_age_seconds=self._settings.live_max_age_seconds,
        )

    def indices(self) -> IndexService:
        return IndexService(self.resolver)

    def snapshot_job(self, session: Session) -> SnapshotJob:
        return SnapshotJob.from_settings(
            self._settings,
            batch_fetcher=self.batch_fetcher,
            trade_repo=SqlAlchemyTradeRepository(session),
            instrument_repo=SqlAlchemyInstrumentRepository(session),
            snapshot_repo=SqlAlchemySnapshotRepository(session),
        )

    def snapshots(self, session: Session) -> SnapshotService:
        return SnapshotService(
            snapshot_repo=SqlAlchemySnapshotRepository(session),
            instrument_repo=SqlAlchemyInstrumentRepository(session),
            job=self.snapshot_job(session),
        )

    # Scheduling
    async def run_scheduled_snapshots(self) -> CronJobMetrics:
        """One scheduled snapshot run with its own database session."""
        with session_scope() as session:
            return await self.snapshot_job(session).run()

    def start_scheduler(self) -> None:
        if self._scheduler is not None:
            return
        self._scheduler = build_scheduler(
            self.run_scheduled_snapshots,
            interval_minutes=self._settings.snapshot_interval_minutes,
        )
        self._scheduler.start()

    async def close(self) -> None:
        """Stop the scheduler, flush cache writes and release provider clients."""
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
        await self.price_service.drain()
        for provider in self._providers:
            await provider.close()
        await self._store.close()

    @staticmethod
    def _unique_providers(chains: ProviderChains, index_providers: Sequence[IndexQuoteProvider]) -> list:
        providers: list = []
        for candidate in [p for chain in chains.values() for p in chain] + list(index_providers):
            if not any(candidate is existing for existing in providers):
                providers.append(candidate)
        return providers


# Global application context (set during application startup)
_app_context: Optional[AppContext] = None


def get_app_context() -> AppContext:
    """Get or create the global application context."""
    global _app_context
    if _app_context is None:
        _app_context = AppContext()
    return _app_context


def set_app_context(context: Optional[AppContext]) -> None:
    """Set (or clear) the global application context."""
    global _app_context
    _app_context = context
