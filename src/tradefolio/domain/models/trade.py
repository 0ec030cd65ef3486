"""Trade and TradeRevision domain models."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from tradefolio.domain.models.enums import TradeSide, RevisionAction


@dataclass(frozen=True)
class Trade:
    """
    Ledger trade entry (source of truth).

    Trades are never mutated after creation; a correction is a new trade.
    Quantities are fractional (Decimal); prices are per unit in ``currency``.
    """

    trade_id: str
    portfolio_id: str
    instrument_id: str
    side: TradeSide
    quantity: Decimal
    price: Decimal
    executed_at: datetime
    currency: str = "EUR"
    fees: Decimal = field(default_factory=lambda: Decimal("0"))
    isin: Optional[str] = None
    ticker: Optional[str] = None
    note: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if isinstance(self.side, str):
            object.__setattr__(self, "side", TradeSide(self.side))

    @property
    def position_key(self) -> str:
        """Grouping key: the stable instrument id, then ISIN, then the display ticker."""
        return self.instrument_id or self.isin or self.ticker or ""

    @property
    def gross_amount(self) -> Decimal:
        """Quantity times price, before fees."""
        return self.quantity * self.price


@dataclass
class TradeRevision:
    """
    Audit trail for ledger changes.

    Records CREATE and REMOVE actions with before/after JSON snapshots.
    """

    rev_id: str
    trade_id: str
    portfolio_id: str
    rev_time: datetime
    action: RevisionAction
    before_json: Optional[str] = None
    after_json: Optional[str] = None

    def __post_init__(self) -> None:
        if isinstance(self.action, str):
            self.action = RevisionAction(self.action)
