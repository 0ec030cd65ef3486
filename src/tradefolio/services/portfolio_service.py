"""Portfolio valuation: ledger replay combined with live price resolution."""

import asyncio
import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from tradefolio.core.timezone import now_utc
from tradefolio.domain.views import PortfolioTotals, PortfolioValuation, Position, PriceError
from tradefolio.repositories.protocols import (
    InstrumentRepository,
    SnapshotRepository,
    TradeRepository,
)
from tradefolio.services.batch_fetcher import BatchFetcher
from tradefolio.services.portfolio_engine import (
    aggregate,
    compute_totals,
    order_positions,
    value_position,
)

logger = logging.getLogger(__name__)


class PortfolioService:
    """
    Values a portfolio at current prices.

    Only open positions are priced. When every provider fails for an
    instrument the latest stored snapshot is used; without one the position
    is valued at its average cost and the failure is reported alongside.
    """

    def __init__(
        self,
        trade_repo: TradeRepository,
        instrument_repo: InstrumentRepository,
        snapshot_repo: SnapshotRepository,
        batch_fetcher: BatchFetcher,
        max_age_seconds: int = 60,
    ):
        self._trade_repo = trade_repo
        self._instrument_repo = instrument_repo
        self._snapshot_repo = snapshot_repo
        self._batch_fetcher = batch_fetcher
        self._max_age = max_age_seconds

    async def value_portfolio(self, portfolio_id: str, include_closed: bool = True) -> PortfolioValuation:
        trades = await asyncio.to_thread(self._trade_repo.list_by_portfolio, portfolio_id)
        positions = aggregate(trades)
        open_positions = [pos for pos in positions.values() if not pos.is_closed]

        prices, errors = await self._resolve(open_positions)
        for key, position in positions.items():
            value_position(position, prices.get(key))
        return PortfolioValuation(
            portfolio_id=portfolio_id,
            positions=order_positions(positions.values(), include_closed),
            price_errors=errors,
            valued_at=now_utc(),
        )

    async def compute_totals(
        self,
        portfolio_id: str,
        open_only: bool = False,
        closed_only: bool = False,
        profit_only: bool = False,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> PortfolioTotals:
        """Portfolio totals over the filtered positions, valued at current prices."""
        valuation = await self.value_portfolio(portfolio_id, include_closed=not open_only)
        return compute_totals(
            valuation.positions,
            open_only=open_only,
            closed_only=closed_only,
            profit_only=profit_only,
            date_from=date_from,
            date_to=date_to,
        )

    async def _resolve(self, positions: list[Position]) -> tuple[dict[str, Decimal], list[PriceError]]:
        """
        Current prices for the given positions, keyed by instrument id.

        A price quoted in another currency than the position is dropped and
        reported, so the position falls back to its average cost.
        """
        if not positions:
            return {}, []

        currencies = {pos.instrument_id: pos.currency.upper() for pos in positions}
        instrument_ids = list(currencies)
        directory = await asyncio.to_thread(self._instrument_repo.get_many, instrument_ids)
        errors = [
            PriceError(instrument_id=i, message=f"Instrument not found: {i}", code="NOT_FOUND")
            for i in instrument_ids
            if i not in directory
        ]
        instruments = [directory[i] for i in instrument_ids if i in directory]

        prices: dict[str, Decimal] = {}
        size = self._batch_fetcher.max_instruments
        for start in range(0, len(instruments), size):
            result = await self._batch_fetcher.fetch_batch(
                instruments[start:start + size],
                max_age_seconds=self._max_age,
                fallback_store=self._snapshot_repo,
            )
            for key, priced in result.prices.items():
                quoted = priced.currency.upper()
                if quoted != currencies[key]:
                    logger.warning(
                        "Ignoring %s price for %s: position is held in %s", quoted, key, currencies[key]
                    )
                    errors.append(
                        PriceError(
                            instrument_id=key,
                            message=f"Price quoted in {quoted}, position held in {currencies[key]}",
                            code="CURRENCY_MISMATCH",
                        )
                    )
                    continue
                prices[key] = priced.price
            errors.extend(result.errors)

        if errors:
            logger.warning("Valuing %d instruments at average cost: no price available", len(errors))
        return prices, errors
