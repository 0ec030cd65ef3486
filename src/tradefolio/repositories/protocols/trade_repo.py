"""Trade ledger repository protocol."""

from datetime import datetime
from typing import Protocol, Optional

from tradefolio.domain.models import Trade, TradeRevision


class TradeRepository(Protocol):
    """Interface for trade ledger data access."""

    def create(self, trade: Trade) -> Trade:
        """Persist a new trade."""
        ...

    def get_by_id(self, trade_id: str) -> Optional[Trade]:
        """Retrieve trade by ID."""
        ...

    def delete(self, trade_id: str) -> None:
        """Remove a trade (callers record the removal as a revision)."""
        ...

    def list_by_portfolio(
        self,
        portfolio_id: str,
        instrument_id: Optional[str] = None,
    ) -> list[Trade]:
        """List trades of a portfolio, ordered by execution time."""
        ...

    def list_open_instrument_ids(self) -> list[str]:
        """Instruments with a positive net quantity in any portfolio."""
        ...

    def list_instrument_ids_traded_since(self, since: datetime) -> list[str]:
        """Instruments with at least one trade executed at or after ``since``."""
        ...

    def create_revision(self, revision: TradeRevision) -> TradeRevision:
        """Create a new revision record."""
        ...

    def list_revisions_by_trade(self, trade_id: str) -> list[TradeRevision]:
        """List all revisions for a trade."""
        ...
