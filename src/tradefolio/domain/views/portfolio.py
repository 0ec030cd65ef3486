"""View models for derived positions and portfolio totals."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from tradefolio.domain.views.pricing import PriceError

QUANTITY_PLACES = Decimal("0.00000001")


def round_quantity(quantity: Decimal) -> Decimal:
    """Round a quantity to the ledger's 8 decimal places."""
    return quantity.quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PartialSale:
    """Portion of a SELL allocated to one buy lot."""

    sell_trade_id: str
    quantity: Decimal
    sale_price: Decimal
    proceeds: Decimal
    realized_pnl: Decimal
    sold_at: datetime


@dataclass
class Lot:
    """Quantity acquired by a single BUY, reducible by partial sales."""

    trade_id: str
    quantity: Decimal
    price: Decimal
    fees: Decimal
    acquired_at: datetime
    remaining_quantity: Decimal
    partial_sales: list[PartialSale] = field(default_factory=list)

    @property
    def is_closed(self) -> bool:
        return round_quantity(self.remaining_quantity) == Decimal("0")


@dataclass
class Position:
    """
    Derived position for one instrument within one portfolio.

    Never authoritative: always reproducible by replaying the trades of the
    instrument in execution-timestamp order. Valuation fields are filled by
    the engine once a current price (or its absence) is known.
    """

    instrument_id: str
    portfolio_id: str
    currency: str = "EUR"
    isin: Optional[str] = None
    ticker: Optional[str] = None
    open_quantity: Decimal = field(default_factory=lambda: Decimal("0"))
    average_cost: Decimal = field(default_factory=lambda: Decimal("0"))
    invested: Decimal = field(default_factory=lambda: Decimal("0"))
    realized_pnl: Decimal = field(default_factory=lambda: Decimal("0"))
    total_fees: Decimal = field(default_factory=lambda: Decimal("0"))
    bought_quantity: Decimal = field(default_factory=lambda: Decimal("0"))
    sold_quantity: Decimal = field(default_factory=lambda: Decimal("0"))
    open_lots: list[Lot] = field(default_factory=list)
    closed_lots: list[Lot] = field(default_factory=list)
    first_trade_at: Optional[datetime] = None
    last_trade_at: Optional[datetime] = None
    trade_count: int = 0

    # Valuation
    current_price: Optional[Decimal] = None
    price_available: bool = False
    market_value: Decimal = field(default_factory=lambda: Decimal("0"))
    unrealized_pnl: Decimal = field(default_factory=lambda: Decimal("0"))
    total_pnl: Decimal = field(default_factory=lambda: Decimal("0"))
    unrealized_pnl_percent: Decimal = field(default_factory=lambda: Decimal("0"))
    total_pnl_percent: Decimal = field(default_factory=lambda: Decimal("0"))

    @property
    def is_closed(self) -> bool:
        """A position is closed once its open quantity rounds to zero at 8 dp."""
        return round_quantity(self.open_quantity) == Decimal("0")

    @property
    def partial_sales(self) -> list[PartialSale]:
        """Every sale allocation recorded on this position's lots, oldest first."""
        sales = [
            sale
            for lot in self.closed_lots + self.open_lots
            for sale in lot.partial_sales
        ]
        return sorted(sales, key=lambda s: s.sold_at)


@dataclass
class PortfolioTotals:
    """Aggregated figures over a filtered set of positions."""

    total_value: Decimal = field(default_factory=lambda: Decimal("0"))
    total_invested: Decimal = field(default_factory=lambda: Decimal("0"))
    realized_pnl: Decimal = field(default_factory=lambda: Decimal("0"))
    unrealized_pnl: Decimal = field(default_factory=lambda: Decimal("0"))
    total_pnl: Decimal = field(default_factory=lambda: Decimal("0"))
    total_pnl_percent: Decimal = field(default_factory=lambda: Decimal("0"))
    total_fees: Decimal = field(default_factory=lambda: Decimal("0"))
    profit_sum: Decimal = field(default_factory=lambda: Decimal("0"))  # gains only, losses count as 0
    position_count: int = 0
    open_count: int = 0
    closed_count: int = 0
    winning_count: int = 0
    losing_count: int = 0
    unpriced_count: int = 0


@dataclass
class PortfolioValuation:
    """Valued positions of a portfolio plus the pricing failures behind them."""

    portfolio_id: str
    positions: list[Position] = field(default_factory=list)
    price_errors: list[PriceError] = field(default_factory=list)
    valued_at: Optional[datetime] = None
