"""
Integration tests for SQLAlchemy repositories with SQLite.

Tests cover:
- Instrument directory lookups
- Trade ledger CRUD and working-set queries
- Append-only snapshot store
- Data persistence across sessions
"""

import uuid
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from tradefolio.core.exceptions import NotFoundError
from tradefolio.domain.models import (
    PriceSnapshot,
    RevisionAction,
    TradeRevision,
    TradeSide,
)
from tradefolio.repositories.sqlalchemy import (
    SqlAlchemyInstrumentRepository,
    SqlAlchemySnapshotRepository,
    SqlAlchemyTradeRepository,
)

from tests.conftest import make_trade, utc_datetime


def make_snapshot(instrument_id: str, snapshot_at, price: str = "100.12345678") -> PriceSnapshot:
    return PriceSnapshot(
        instrument_id=instrument_id,
        price=Decimal(price),
        currency="USD",
        source="yahoo",
        snapshot_at=snapshot_at,
    )


# =============================================================================
# INSTRUMENT REPOSITORY TESTS
# =============================================================================


class TestInstrumentRepository:
    """Tests for SqlAlchemyInstrumentRepository."""

    def test_create_and_get(self, instrument_repo: SqlAlchemyInstrumentRepository, aapl):
        """
        GIVEN an in-memory SQLite database
        WHEN an instrument is created
        THEN it can be retrieved by ID with all identifiers
        """
        instrument_repo.create(aapl)

        assert instrument_repo.get_by_id("inst-aapl") == aapl
        assert instrument_repo.get_by_id("missing") is None

    def test_get_many_omits_unknown(self, instrument_repo, stored_instruments):
        found = instrument_repo.get_many(["inst-aapl", "inst-btc", "ghost"])

        assert set(found) == {"inst-aapl", "inst-btc"}
        assert instrument_repo.get_many([]) == {}

    def test_list_ids_with_limit(self, instrument_repo, stored_instruments):
        assert len(instrument_repo.list_ids()) == 3
        assert len(instrument_repo.list_ids(limit=2)) == 2


# =============================================================================
# TRADE REPOSITORY TESTS
# =============================================================================


class TestTradeRepository:
    """Tests for SqlAlchemyTradeRepository."""

    def test_create_round_trips_decimals_and_timestamps(self, trade_repo: SqlAlchemyTradeRepository):
        trade = make_trade(TradeSide.BUY, "0.12345678", "61000.5", fees="1.25",
                           executed_at=utc_datetime(2024, 3, 5, 14, 30), instrument_id="inst-btc")

        trade_repo.create(trade)
        stored = trade_repo.get_by_id(trade.trade_id)

        assert stored.quantity == Decimal("0.12345678")
        assert stored.price == Decimal("61000.5")
        assert stored.fees == Decimal("1.25")
        assert stored.side == TradeSide.BUY
        assert stored.executed_at == utc_datetime(2024, 3, 5, 14, 30)
        assert stored.created_at is not None

    def test_list_by_portfolio_orders_by_execution(self, trade_repo):
        late = make_trade(TradeSide.SELL, "1", "10", executed_at=utc_datetime(2024, 2, 1))
        early = make_trade(TradeSide.BUY, "1", "10", executed_at=utc_datetime(2024, 1, 1))
        other = make_trade(TradeSide.BUY, "1", "10", portfolio_id="pf-2")
        for trade in (late, early, other):
            trade_repo.create(trade)

        trades = trade_repo.list_by_portfolio("pf-1")

        assert [t.trade_id for t in trades] == [early.trade_id, late.trade_id]

    def test_list_by_portfolio_and_instrument(self, trade_repo):
        trade_repo.create(make_trade(TradeSide.BUY, "1", "10", instrument_id="inst-aapl"))
        trade_repo.create(make_trade(TradeSide.BUY, "1", "10", instrument_id="inst-sap"))

        trades = trade_repo.list_by_portfolio("pf-1", instrument_id="inst-sap")

        assert [t.instrument_id for t in trades] == ["inst-sap"]

    def test_delete(self, trade_repo):
        trade = trade_repo.create(make_trade(TradeSide.BUY, "1", "10"))

        trade_repo.delete(trade.trade_id)

        assert trade_repo.get_by_id(trade.trade_id) is None
        with pytest.raises(NotFoundError):
            trade_repo.delete(trade.trade_id)

    def test_list_open_instrument_ids(self, trade_repo):
        """
        GIVEN AAPL open in pf-1, SAP fully sold in pf-1 but open in pf-2, BTC fully sold
        WHEN open instruments are listed
        THEN AAPL and SAP are returned
        """
        trades = [
            make_trade(TradeSide.BUY, "2", "10", instrument_id="inst-aapl"),
            make_trade(TradeSide.SELL, "1.5", "10", instrument_id="inst-aapl"),
            make_trade(TradeSide.BUY, "1", "10", instrument_id="inst-sap"),
            make_trade(TradeSide.SELL, "1", "10", instrument_id="inst-sap"),
            make_trade(TradeSide.BUY, "1", "10", instrument_id="inst-sap", portfolio_id="pf-2"),
            make_trade(TradeSide.BUY, "0.5", "10", instrument_id="inst-btc"),
            make_trade(TradeSide.SELL, "0.5", "10", instrument_id="inst-btc"),
        ]
        for trade in trades:
            trade_repo.create(trade)

        assert trade_repo.list_open_instrument_ids() == ["inst-aapl", "inst-sap"]

    def test_list_instrument_ids_traded_since(self, trade_repo):
        trade_repo.create(make_trade(TradeSide.BUY, "1", "10", instrument_id="inst-aapl",
                                     executed_at=utc_datetime(2024, 5, 1)))
        trade_repo.create(make_trade(TradeSide.BUY, "1", "10", instrument_id="inst-sap",
                                     executed_at=utc_datetime(2024, 6, 1)))
        trade_repo.create(make_trade(TradeSide.BUY, "1", "10", instrument_id="inst-sap",
                                     executed_at=utc_datetime(2024, 6, 2)))

        assert trade_repo.list_instrument_ids_traded_since(utc_datetime(2024, 6, 1)) == ["inst-sap"]

    def test_revisions_outlive_deleted_trade(self, trade_repo):
        trade = trade_repo.create(make_trade(TradeSide.BUY, "1", "10"))
        trade_repo.create_revision(
            TradeRevision(
                rev_id=str(uuid.uuid4()),
                trade_id=trade.trade_id,
                portfolio_id="pf-1",
                rev_time=utc_datetime(2024, 1, 1, 10),
                action=RevisionAction.CREATE,
                after_json="{}",
            )
        )
        trade_repo.delete(trade.trade_id)
        trade_repo.create_revision(
            TradeRevision(
                rev_id=str(uuid.uuid4()),
                trade_id=trade.trade_id,
                portfolio_id="pf-1",
                rev_time=utc_datetime(2024, 1, 2, 10),
                action=RevisionAction.REMOVE,
                before_json="{}",
            )
        )

        revisions = trade_repo.list_revisions_by_trade(trade.trade_id)

        assert [r.action for r in revisions] == [RevisionAction.CREATE, RevisionAction.REMOVE]
        assert revisions[0].rev_time == utc_datetime(2024, 1, 1, 10)


# =============================================================================
# SNAPSHOT REPOSITORY TESTS
# =============================================================================


class TestSnapshotRepository:
    """Tests for SqlAlchemySnapshotRepository."""

    def test_append_and_latest(self, snapshot_repo: SqlAlchemySnapshotRepository):
        assert snapshot_repo.append(make_snapshot("inst-aapl", utc_datetime(2024, 6, 1)))
        assert snapshot_repo.append(make_snapshot("inst-aapl", utc_datetime(2024, 6, 2), price="101"))

        latest = snapshot_repo.latest("inst-aapl")

        assert latest.price == Decimal("101")
        assert latest.snapshot_at == utc_datetime(2024, 6, 2)
        assert latest.snapshot_id is not None
        assert snapshot_repo.latest("ghost") is None

    def test_duplicate_append_keeps_original(self, snapshot_repo):
        """
        GIVEN a snapshot for AAPL at 12:00
        WHEN another AAPL snapshot for 12:00 is appended
        THEN append returns False and the first price is kept
        """
        at = utc_datetime(2024, 6, 1, 12)
        snapshot_repo.append(make_snapshot("inst-aapl", at, price="100"))

        assert snapshot_repo.append(make_snapshot("inst-aapl", at, price="999")) is False
        assert snapshot_repo.latest("inst-aapl").price == Decimal("100")
        assert snapshot_repo.stats().total_snapshots == 1

    def test_decimal_precision(self, snapshot_repo):
        snapshot_repo.append(make_snapshot("inst-btc", utc_datetime(2024, 6, 1)))

        assert snapshot_repo.latest("inst-btc").price == Decimal("100.12345678")

    def test_latest_times(self, snapshot_repo):
        snapshot_repo.append(make_snapshot("inst-aapl", utc_datetime(2024, 6, 1)))
        snapshot_repo.append(make_snapshot("inst-aapl", utc_datetime(2024, 6, 3)))
        snapshot_repo.append(make_snapshot("inst-sap", utc_datetime(2024, 6, 2)))

        latest = snapshot_repo.latest_times(["inst-aapl", "inst-sap", "inst-btc"])

        assert latest == {
            "inst-aapl": utc_datetime(2024, 6, 3),
            "inst-sap": utc_datetime(2024, 6, 2),
        }
        assert snapshot_repo.latest_times([]) == {}

    def test_list_range_open_ended(self, snapshot_repo):
        for day in (1, 2, 3):
            snapshot_repo.append(make_snapshot("inst-aapl", utc_datetime(2024, 6, day)))

        assert len(snapshot_repo.list_range("inst-aapl")) == 3
        assert len(snapshot_repo.list_range("inst-aapl", start=utc_datetime(2024, 6, 2))) == 2
        assert len(snapshot_repo.list_range("inst-aapl", end=utc_datetime(2024, 6, 1))) == 1

    def test_stats_on_empty_store(self, snapshot_repo):
        stats = snapshot_repo.stats()

        assert stats.total_snapshots == 0
        assert stats.instrument_count == 0
        assert stats.oldest_snapshot_at is None

    def test_visible_from_another_session(self, test_engine, snapshot_repo):
        snapshot_repo.append(make_snapshot("inst-aapl", utc_datetime(2024, 6, 1)))

        other = sessionmaker(bind=test_engine)()
        try:
            assert SqlAlchemySnapshotRepository(other).stats().total_snapshots == 1
        finally:
            other.close()
