"""Portfolio engine for deriving positions and P&L from the trade ledger."""

from collections import OrderedDict
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Iterable, Mapping, Optional

from tradefolio.core.exceptions import InsufficientQuantityError, ValidationError
from tradefolio.core.timezone import to_utc
from tradefolio.domain.models import Trade, TradeSide
from tradefolio.domain.views import Lot, PartialSale, Position, PortfolioTotals, round_quantity
from tradefolio.repositories.protocols import TradeRepository

ZERO = Decimal("0")
HUNDRED = Decimal("100")
PERCENT_PLACES = Decimal("0.0001")

PriceLookup = Callable[[str], Optional[Decimal]]


def _percent(numerator: Decimal, denominator: Decimal) -> Decimal:
    if denominator == ZERO:
        return ZERO
    return (numerator / denominator * HUNDRED).quantize(PERCENT_PLACES, rounding=ROUND_HALF_UP)


class PositionBuilder:
    """
    Replays the trades of one instrument into a Position (average-cost method).

    Trades must be applied in non-decreasing execution order. A rejected trade
    raises before any state is touched, so the position stays as it was.
    """

    def __init__(
        self,
        instrument_id: str,
        portfolio_id: str,
        currency: str = "EUR",
        isin: Optional[str] = None,
        ticker: Optional[str] = None,
    ):
        self.position = Position(
            instrument_id=instrument_id,
            portfolio_id=portfolio_id,
            currency=currency,
            isin=isin,
            ticker=ticker,
        )

    def apply(self, trade: Trade) -> Position:
        """Apply one trade and return the updated position."""
        if trade.quantity <= ZERO:
            raise ValidationError(f"Trade {trade.trade_id} requires quantity > 0")
        if trade.price <= ZERO:
            raise ValidationError(f"Trade {trade.trade_id} requires price > 0")
        if trade.fees < ZERO:
            raise ValidationError(f"Trade {trade.trade_id} has negative fees")

        if trade.side == TradeSide.BUY:
            self._apply_buy(trade)
        else:
            self._apply_sell(trade)

        pos = self.position
        pos.trade_count += 1
        pos.total_fees += trade.fees
        if pos.first_trade_at is None:
            pos.first_trade_at = trade.executed_at
        pos.last_trade_at = trade.executed_at
        if trade.isin and not pos.isin:
            pos.isin = trade.isin
        if trade.ticker and not pos.ticker:
            pos.ticker = trade.ticker
        return pos

    def _apply_buy(self, trade: Trade) -> None:
        pos = self.position
        pos.invested += trade.gross_amount + trade.fees
        pos.open_quantity += trade.quantity
        pos.bought_quantity += trade.quantity
        pos.average_cost = pos.invested / pos.open_quantity
        pos.open_lots.append(
            Lot(
                trade_id=trade.trade_id,
                quantity=trade.quantity,
                price=trade.price,
                fees=trade.fees,
                acquired_at=trade.executed_at,
                remaining_quantity=trade.quantity,
            )
        )

    def _apply_sell(self, trade: Trade) -> None:
        pos = self.position
        requested = round_quantity(trade.quantity)
        available = round_quantity(pos.open_quantity)
        if requested > available:
            raise InsufficientQuantityError(
                pos.instrument_id,
                requested=str(trade.quantity),
                available=str(pos.open_quantity),
            )

        # Closing uses the tracked quantity so no sub-8-dp residue stays open
        closes_position = (
            requested == available
            or round_quantity(pos.open_quantity - trade.quantity) == ZERO
        )
        quantity = pos.open_quantity if closes_position else trade.quantity
        avg_cost = pos.average_cost

        pos.realized_pnl += (trade.price - avg_cost) * quantity - trade.fees
        pos.sold_quantity += quantity
        self._allocate_to_lots(trade, quantity, avg_cost, closes_position)

        if closes_position:
            pos.open_quantity = ZERO
            pos.invested = ZERO
        else:
            pos.open_quantity -= quantity
            pos.invested -= avg_cost * quantity

    def _allocate_to_lots(
        self,
        trade: Trade,
        quantity: Decimal,
        avg_cost: Decimal,
        closes_position: bool,
    ) -> None:
        """Deplete open lots oldest first, recording a PartialSale on each."""
        pos = self.position
        remaining = quantity
        still_open: list[Lot] = []

        for lot in pos.open_lots:
            if remaining <= ZERO and not closes_position:
                still_open.append(lot)
                continue
            take = lot.remaining_quantity if closes_position else min(lot.remaining_quantity, remaining)
            fee_share = trade.fees * take / quantity
            lot.partial_sales.append(
                PartialSale(
                    sell_trade_id=trade.trade_id,
                    quantity=take,
                    sale_price=trade.price,
                    proceeds=take * trade.price,
                    realized_pnl=(trade.price - avg_cost) * take - fee_share,
                    sold_at=trade.executed_at,
                )
            )
            lot.remaining_quantity -= take
            remaining -= take
            if closes_position or lot.remaining_quantity <= ZERO:
                lot.remaining_quantity = ZERO
                pos.closed_lots.append(lot)
            else:
                still_open.append(lot)

        pos.open_lots = still_open


def _sort_key(trade: Trade) -> datetime:
    return to_utc(trade.executed_at)


def value_position(position: Position, current_price: Optional[Decimal]) -> Position:
    """
    Mark a position to market.

    Without a usable price the position is valued at its average cost, which
    yields zero unrealized P&L instead of failing the aggregation.
    """
    if current_price is not None and current_price > ZERO:
        price = current_price
        position.price_available = True
    else:
        price = position.average_cost
        position.price_available = False
    position.current_price = current_price if position.price_available else None

    if position.is_closed:
        position.market_value = ZERO
        position.unrealized_pnl = ZERO
    else:
        position.market_value = price * position.open_quantity
        position.unrealized_pnl = (price - position.average_cost) * position.open_quantity

    position.total_pnl = position.realized_pnl + position.unrealized_pnl
    position.unrealized_pnl_percent = _percent(position.unrealized_pnl, position.invested)
    position.total_pnl_percent = _percent(position.total_pnl, position.invested)
    return position


def aggregate(
    trades: Iterable[Trade],
    current_price: Optional[PriceLookup] = None,
) -> dict[str, Position]:
    """
    Aggregate trades into valued positions keyed by instrument.

    Trades are grouped by position key and replayed in execution-timestamp
    order (ties keep ledger order). Expects the trades of a single portfolio.

    Raises:
        InsufficientQuantityError: a SELL exceeds the quantity open at its time.
    """
    lookup = current_price or (lambda _key: None)
    builders: "OrderedDict[str, PositionBuilder]" = OrderedDict()

    for trade in sorted(trades, key=_sort_key):
        key = trade.position_key
        if not key:
            raise ValidationError(f"Trade {trade.trade_id} has no instrument identifier")
        builder = builders.get(key)
        if builder is None:
            builder = PositionBuilder(
                instrument_id=key,
                portfolio_id=trade.portfolio_id,
                currency=trade.currency,
                isin=trade.isin,
                ticker=trade.ticker,
            )
            builders[key] = builder
        builder.apply(trade)

    return {
        key: value_position(builder.position, lookup(key))
        for key, builder in builders.items()
    }


def order_positions(positions: Iterable[Position], include_closed: bool = True) -> list[Position]:
    """Open positions first, then by instrument id; closed ones dropped unless requested."""
    result = [p for p in positions if include_closed or not p.is_closed]
    return sorted(result, key=lambda p: (p.is_closed, p.instrument_id))


def compute_totals(
    positions: Iterable[Position],
    open_only: bool = False,
    closed_only: bool = False,
    profit_only: bool = False,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> PortfolioTotals:
    """
    Sum valued positions into portfolio totals.

    Date filters apply to each position's last trade timestamp. With
    ``profit_only`` the P&L figures only count positions that are in profit.
    """
    filtered = list(positions)
    if open_only:
        filtered = [p for p in filtered if not p.is_closed]
    if closed_only:
        filtered = [p for p in filtered if p.is_closed]
    if date_from is not None:
        filtered = [p for p in filtered if p.last_trade_at and to_utc(p.last_trade_at) >= to_utc(date_from)]
    if date_to is not None:
        filtered = [p for p in filtered if p.last_trade_at and to_utc(p.last_trade_at) <= to_utc(date_to)]
    if profit_only:
        counted = [p for p in filtered if p.total_pnl > ZERO]
    else:
        counted = filtered

    totals = PortfolioTotals(position_count=len(filtered))
    for pos in filtered:
        totals.total_value += pos.market_value
        totals.total_invested += pos.invested
        totals.total_fees += pos.total_fees
        if pos.is_closed:
            totals.closed_count += 1
        else:
            totals.open_count += 1
            if not pos.price_available:
                totals.unpriced_count += 1
        if pos.total_pnl > ZERO:
            totals.winning_count += 1
            totals.profit_sum += pos.total_pnl
        elif pos.total_pnl < ZERO:
            totals.losing_count += 1

    for pos in counted:
        totals.realized_pnl += pos.realized_pnl
        totals.unrealized_pnl += pos.unrealized_pnl

    totals.total_pnl = totals.realized_pnl + totals.unrealized_pnl
    totals.total_pnl_percent = _percent(totals.total_pnl, totals.total_invested)
    return totals


class PortfolioEngine:
    """
    Engine for computing portfolio state from the ledger.

    Positions are never stored; every call replays the portfolio's trades.
    """

    def __init__(self, trade_repo: TradeRepository):
        self._trade_repo = trade_repo

    def compute_positions(
        self,
        portfolio_id: str,
        prices: Optional[Mapping[str, Decimal]] = None,
        include_closed: bool = True,
    ) -> list[Position]:
        """
        Compute valued positions for a portfolio.

        Deterministic for a given ledger and price map; instruments missing
        from ``prices`` are valued at average cost.
        """
        trades = self._trade_repo.list_by_portfolio(portfolio_id)
        price_map = prices or {}
        positions = aggregate(trades, price_map.get)
        return order_positions(positions.values(), include_closed)
