"""
Pytest configuration and fixtures for tradefolio tests.

This module provides:
- In-memory SQLite database fixtures
- Factory helpers for instruments and trades
- Scriptable fake quote providers and an in-memory key-value store
- Fixed-clock helpers in UTC
- Service and repository fixtures
"""

import asyncio
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Optional

import pytest
from sqlalchemy import create_engine, StaticPool
from sqlalchemy.orm import sessionmaker, Session
from fastapi.testclient import TestClient

from tradefolio.app_context import AppContext, set_app_context
from tradefolio.cache import InMemoryKeyValueStore, PriceCache
from tradefolio.config.settings import Settings, set_settings, reset_settings
from tradefolio.core.exceptions import CacheError, ProviderError
from tradefolio.core.timezone import UTC_TZ, now_utc
from tradefolio.domain.models import (
    Instrument,
    InstrumentKind,
    Quote,
    Trade,
    TradeSide,
)
from tradefolio.providers.indices import BenchmarkIndex
from tradefolio.repositories.sqlalchemy.database import Base, get_db, reset_database
# Import ORM models to register them with Base before creating tables
from tradefolio.repositories.sqlalchemy import orm_models  # noqa: F401
from tradefolio.repositories.sqlalchemy import (
    SqlAlchemyInstrumentRepository,
    SqlAlchemySnapshotRepository,
    SqlAlchemyTradeRepository,
)
from tradefolio.services import (
    BatchFetcher,
    LedgerService,
    PortfolioEngine,
    PriceService,
    WaterfallResolver,
)
from tradefolio.services.ledger_service import TradeCreate


# =============================================================================
# TIME HELPERS
# =============================================================================


def utc_datetime(
    year: int,
    month: int,
    day: int,
    hour: int = 10,
    minute: int = 0,
    second: int = 0,
) -> datetime:
    """Create an aware datetime in UTC."""
    return UTC_TZ.localize(datetime(year, month, day, hour, minute, second))


class FixedClock:
    """Settable clock returning aware UTC datetimes."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class ManualTimer:
    """Monotonic timer that only moves when told to."""

    def __init__(self, start: float = 0.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


@pytest.fixture
def fixed_now() -> datetime:
    """Fixed 'now' timestamp for deterministic tests."""
    return utc_datetime(2024, 6, 14, 12, 0, 0)


@pytest.fixture
def clock(fixed_now) -> FixedClock:
    return FixedClock(fixed_now)


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture(scope="function")
def test_engine():
    """Create test database engine with shared in-memory SQLite."""
    # Reset settings for clean state
    reset_settings()

    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def test_session(test_engine) -> Session:
    """Create test database session."""
    TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


# =============================================================================
# REPOSITORY FIXTURES
# =============================================================================


@pytest.fixture
def trade_repo(test_session) -> SqlAlchemyTradeRepository:
    """Provide test TradeRepository."""
    return SqlAlchemyTradeRepository(test_session)


@pytest.fixture
def instrument_repo(test_session) -> SqlAlchemyInstrumentRepository:
    """Provide test InstrumentRepository."""
    return SqlAlchemyInstrumentRepository(test_session)


@pytest.fixture
def snapshot_repo(test_session) -> SqlAlchemySnapshotRepository:
    """Provide test SnapshotRepository."""
    return SqlAlchemySnapshotRepository(test_session)


# =============================================================================
# INSTRUMENT FIXTURES
# =============================================================================


AAPL = Instrument(instrument_id="inst-aapl", symbol="AAPL", isin="US0378331005", name="Apple Inc.", currency="USD")
SAP = Instrument(instrument_id="inst-sap", symbol="SAP.DE", isin="DE0007164600", name="SAP SE")
BTC = Instrument(instrument_id="inst-btc", symbol="BTC", name="Bitcoin")


@pytest.fixture
def aapl() -> Instrument:
    return AAPL


@pytest.fixture
def sap() -> Instrument:
    return SAP


@pytest.fixture
def btc() -> Instrument:
    return BTC


@pytest.fixture
def make_instruments() -> Callable[[int], list[Instrument]]:
    """Factory for N distinct generic instruments (T0, T1, ...)."""

    def _make(count: int) -> list[Instrument]:
        return [Instrument(instrument_id=f"inst-{i}", symbol=f"T{i}") for i in range(count)]

    return _make


@pytest.fixture
def stored_instruments(instrument_repo) -> list[Instrument]:
    """AAPL, SAP and BTC persisted in the directory."""
    return [instrument_repo.create(i) for i in (AAPL, SAP, BTC)]


# =============================================================================
# QUOTE PROVIDER FIXTURES
# =============================================================================


class FakeQuoteProvider:
    """
    Scriptable quote provider.

    Prices are looked up by instrument id; an instrument without a price
    raises ProviderError. ``error`` makes every call raise it, ``delay``
    sleeps before answering.
    """

    def __init__(
        self,
        name: str,
        prices: Optional[dict[str, Decimal]] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
        as_of: Optional[datetime] = None,
        supported: bool = True,
        index_quotes: Optional[dict[str, Decimal]] = None,
    ):
        self.name = name
        self._prices = prices or {}
        self._error = error
        self._delay = delay
        self._as_of = as_of
        self._supported = supported
        self._index_quotes = index_quotes or {}
        self.calls: list[str] = []
        self.closed = False

    def supports(self, instrument: Instrument) -> bool:
        return self._supported

    async def get_quote(self, instrument: Instrument) -> Quote:
        self.calls.append(instrument.instrument_id)
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        price = self._prices.get(instrument.instrument_id)
        if price is None:
            raise ProviderError(self.name, f"no quote for {instrument.label}")
        return Quote(
            price=price,
            currency=instrument.currency,
            as_of=self._as_of or now_utc(),
            source=self.name,
        )

    async def get_index_quotes(self, indices: list[BenchmarkIndex]) -> dict[str, Quote]:
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return {
            index.name: Quote(price=self._index_quotes[index.name], currency="USD", as_of=now_utc(), source=self.name)
            for index in indices
            if index.name in self._index_quotes
        }

    async def close(self) -> None:
        self.closed = True


class FailingKeyValueStore:
    """Key-value store whose every operation fails."""

    async def get(self, key: str) -> Optional[str]:
        raise CacheError("store unavailable")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        raise CacheError("store unavailable")

    async def delete(self, key: str) -> None:
        raise CacheError("store unavailable")

    async def close(self) -> None:
        return None


def single_chain(*providers) -> dict[InstrumentKind, list]:
    """The same provider chain for every instrument kind."""
    return {kind: list(providers) for kind in InstrumentKind}


@pytest.fixture
def kv_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def price_cache(kv_store) -> PriceCache:
    return PriceCache(kv_store, ttl_seconds=60)


@pytest.fixture
def primary_provider() -> FakeQuoteProvider:
    """Provider pricing AAPL, SAP and BTC."""
    return FakeQuoteProvider(
        "primary",
        prices={
            AAPL.instrument_id: Decimal("190.00"),
            SAP.instrument_id: Decimal("175.50"),
            BTC.instrument_id: Decimal("61000"),
        },
    )


@pytest.fixture
def resolver(primary_provider) -> WaterfallResolver:
    return WaterfallResolver(single_chain(primary_provider), timeout_seconds=1.0)


@pytest.fixture
def price_service(price_cache, resolver) -> PriceService:
    return PriceService(price_cache, resolver)


@pytest.fixture
def batch_fetcher(price_service) -> BatchFetcher:
    return BatchFetcher(price_service, max_concurrent=10, max_instruments=100)


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def ledger_service(trade_repo, instrument_repo) -> LedgerService:
    """Provide test LedgerService."""
    return LedgerService(trade_repo=trade_repo, instrument_repo=instrument_repo)


@pytest.fixture
def portfolio_engine(trade_repo) -> PortfolioEngine:
    """Provide test PortfolioEngine."""
    return PortfolioEngine(trade_repo=trade_repo)


# =============================================================================
# FACTORY FIXTURES
# =============================================================================


def make_trade(
    side: TradeSide,
    quantity: str,
    price: str,
    fees: str = "0",
    executed_at: Optional[datetime] = None,
    instrument_id: str = "inst-aapl",
    portfolio_id: str = "pf-1",
    trade_id: Optional[str] = None,
) -> Trade:
    """Build an in-memory trade (not persisted)."""
    return Trade(
        trade_id=trade_id or str(uuid.uuid4()),
        portfolio_id=portfolio_id,
        instrument_id=instrument_id,
        side=side,
        quantity=Decimal(quantity),
        price=Decimal(price),
        fees=Decimal(fees),
        executed_at=executed_at or utc_datetime(2024, 1, 1),
    )


@pytest.fixture
def trade_factory(ledger_service) -> Callable[..., Trade]:
    """Factory recording trades through the ledger service."""

    def _record(
        instrument_id: str,
        side: TradeSide,
        quantity: str,
        price: str,
        fees: str = "0",
        executed_at: Optional[datetime] = None,
        portfolio_id: str = "pf-1",
    ) -> Trade:
        return ledger_service.record_trade(
            TradeCreate(
                portfolio_id=portfolio_id,
                instrument_id=instrument_id,
                side=side,
                quantity=Decimal(quantity),
                price=Decimal(price),
                fees=Decimal(fees),
                executed_at=executed_at,
            )
        )

    return _record


# =============================================================================
# API TEST CLIENT FIXTURE
# =============================================================================


@pytest.fixture
def api_settings() -> Settings:
    return Settings(
        database_url="sqlite:///:memory:",
        cron_secret="test-secret",
        scheduler_enabled=False,
        snapshot_batch_delay_seconds=0,
        _env_file=None,
    )


@pytest.fixture
def api_provider() -> FakeQuoteProvider:
    return FakeQuoteProvider(
        "fake",
        prices={
            AAPL.instrument_id: Decimal("200.00"),
            SAP.instrument_id: Decimal("180.00"),
        },
        index_quotes={"S&P 500": Decimal("5800"), "DAX 40": Decimal("21000")},
    )


@pytest.fixture
def app_context(api_settings, api_provider) -> AppContext:
    set_settings(api_settings)
    return AppContext(
        settings=api_settings,
        store=InMemoryKeyValueStore(),
        chains=single_chain(api_provider),
        index_providers=[api_provider],
    )


@pytest.fixture
def client(test_engine, app_context) -> TestClient:
    """Provide FastAPI test client with test database and fake providers."""
    from tradefolio.main import app

    TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

    def override_get_db():
        session = TestSessionLocal()
        try:
            yield session
        finally:
            session.close()

    reset_database()
    set_app_context(app_context)
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    set_app_context(None)
    reset_database()
    reset_settings()


@pytest.fixture
def api_instruments(test_engine) -> list[Instrument]:
    """AAPL, SAP and BTC persisted through a separate session on the test engine."""
    session = sessionmaker(bind=test_engine)()
    try:
        repo = SqlAlchemyInstrumentRepository(session)
        return [repo.create(i) for i in (AAPL, SAP, BTC)]
    finally:
        session.close()


# =============================================================================
# HELPER FUNCTIONS (exported for use in tests)
# =============================================================================


def assert_decimal_equal(
    actual: Decimal,
    expected: Decimal,
    tolerance: Decimal = Decimal("0.0001"),
) -> None:
    """Assert two Decimals are equal within tolerance."""
    diff = abs(actual - expected)
    assert diff <= tolerance, f"Expected {expected}, got {actual} (diff={diff})"
