"""
Unit tests for SnapshotService history queries and manual runs.
"""

from decimal import Decimal

import pytest

from tradefolio.core.exceptions import NotFoundError, ValidationError
from tradefolio.domain.models import PriceSnapshot
from tradefolio.services import SnapshotJob, SnapshotService

from tests.conftest import utc_datetime


def snapshot(instrument_id: str, day: int, price: str = "100") -> PriceSnapshot:
    return PriceSnapshot(
        instrument_id=instrument_id,
        price=Decimal(price),
        currency="USD",
        source="yahoo",
        snapshot_at=utc_datetime(2024, 6, day, 12),
    )


@pytest.fixture
def snapshot_service(snapshot_repo, instrument_repo, trade_repo, batch_fetcher, clock) -> SnapshotService:
    job = SnapshotJob(batch_fetcher, trade_repo, instrument_repo, snapshot_repo, clock=clock)
    return SnapshotService(snapshot_repo, instrument_repo, job)


class TestHistory:
    """Tests for reading stored price history."""

    def test_range_is_inclusive_and_ordered(self, snapshot_service, snapshot_repo, stored_instruments):
        for day in (12, 10, 11, 13):
            snapshot_repo.append(snapshot("inst-aapl", day, price=str(100 + day)))

        history = snapshot_service.history(
            "inst-aapl", start=utc_datetime(2024, 6, 11, 12), end=utc_datetime(2024, 6, 12, 12)
        )

        assert [s.price for s in history] == [Decimal("111"), Decimal("112")]

    def test_unknown_instrument(self, snapshot_service):
        with pytest.raises(NotFoundError):
            snapshot_service.history("ghost")

    def test_start_after_end(self, snapshot_service, stored_instruments):
        with pytest.raises(ValidationError):
            snapshot_service.history("inst-aapl", start=utc_datetime(2024, 6, 2), end=utc_datetime(2024, 6, 1))

    def test_stats(self, snapshot_service, snapshot_repo):
        snapshot_repo.append(snapshot("inst-aapl", 10))
        snapshot_repo.append(snapshot("inst-sap", 12))

        stats = snapshot_service.stats()

        assert stats.total_snapshots == 2
        assert stats.instrument_count == 2
        assert stats.oldest_snapshot_at == utc_datetime(2024, 6, 10, 12)
        assert stats.newest_snapshot_at == utc_datetime(2024, 6, 12, 12)


class TestManualRun:

    @pytest.mark.asyncio
    async def test_save_snapshots_for_instruments(self, snapshot_service, stored_instruments, fixed_now):
        metrics = await snapshot_service.save_snapshots_for_instruments(["inst-aapl", "inst-btc"])

        assert metrics.snapshots_written == 2
        assert snapshot_service.history("inst-btc")[0].snapshot_at == fixed_now

    @pytest.mark.asyncio
    async def test_empty_list_rejected(self, snapshot_service):
        with pytest.raises(ValidationError):
            await snapshot_service.save_snapshots_for_instruments([])
