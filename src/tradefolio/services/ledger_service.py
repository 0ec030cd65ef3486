"""Ledger service for trade management."""

import json
import threading
import uuid
from dataclasses import dataclass, asdict
from datetime import datetime
from decimal import Decimal
from typing import Optional

from tradefolio.core.timezone import now_utc, to_utc
from tradefolio.core.exceptions import ValidationError, NotFoundError
from tradefolio.domain.models import (
    Trade,
    TradeRevision,
    TradeSide,
    RevisionAction,
)
from tradefolio.repositories.protocols import InstrumentRepository, TradeRepository
from tradefolio.services.portfolio_engine import aggregate

_registry_lock = threading.Lock()
_position_locks: dict[tuple[str, str], threading.Lock] = {}


def position_lock(portfolio_id: str, instrument_id: str) -> threading.Lock:
    """Lock serializing ledger writes for one instrument within one portfolio."""
    with _registry_lock:
        return _position_locks.setdefault((portfolio_id, instrument_id), threading.Lock())


@dataclass
class TradeCreate:
    """Input data for recording a trade."""

    portfolio_id: str
    instrument_id: str
    side: TradeSide
    quantity: Decimal
    price: Decimal
    executed_at: Optional[datetime] = None
    fees: Decimal = Decimal("0")
    currency: Optional[str] = None
    note: Optional[str] = None

    def __post_init__(self) -> None:
        if isinstance(self.side, str):
            self.side = TradeSide(self.side.upper())


class LedgerService:
    """
    Service for managing the trade ledger.

    Trades are immutable; a correction is a new trade. Every creation and
    removal is recorded as a revision.
    """

    def __init__(
        self,
        trade_repo: TradeRepository,
        instrument_repo: InstrumentRepository,
    ):
        self._trade_repo = trade_repo
        self._instrument_repo = instrument_repo

    def record_trade(self, data: TradeCreate) -> Trade:
        """
        Record a new trade in the ledger.

        The instrument's position is replayed with the new trade included, so
        a SELL (including a backdated one) can never exceed the open quantity.

        Raises:
            ValidationError: invalid quantity, price or fees.
            NotFoundError: unknown instrument.
            InsufficientQuantityError: the SELL exceeds the open quantity.
        """
        self._validate_trade_create(data)
        instrument = self._instrument_repo.get_by_id(data.instrument_id)
        if not instrument:
            raise NotFoundError("Instrument", data.instrument_id)

        trade = Trade(
            trade_id=str(uuid.uuid4()),
            portfolio_id=data.portfolio_id,
            instrument_id=instrument.instrument_id,
            side=data.side,
            quantity=data.quantity,
            price=data.price,
            executed_at=to_utc(data.executed_at) if data.executed_at else now_utc(),
            currency=(data.currency or instrument.currency).upper(),
            fees=data.fees,
            isin=instrument.isin,
            ticker=instrument.symbol,
            note=data.note,
            created_at=now_utc(),
        )

        # The oversell check and the insert must not interleave with another
        # write to the same position
        with position_lock(trade.portfolio_id, trade.instrument_id):
            if trade.side == TradeSide.SELL:
                existing = self._trade_repo.list_by_portfolio(trade.portfolio_id, instrument_id=trade.instrument_id)
                aggregate([*existing, trade])

            created = self._trade_repo.create(trade)
            self._create_revision(created, RevisionAction.CREATE, before=None, after=self._to_json(created))
        return created

    def remove_trade(self, trade_id: str) -> None:
        """
        Remove a trade, keeping its last state in the audit trail.

        Raises:
            NotFoundError: unknown trade.
            InsufficientQuantityError: a later SELL depends on this trade.
        """
        trade = self.get_trade(trade_id)
        with position_lock(trade.portfolio_id, trade.instrument_id):
            ledger = self._trade_repo.list_by_portfolio(trade.portfolio_id, instrument_id=trade.instrument_id)
            if not any(t.trade_id == trade_id for t in ledger):
                raise NotFoundError("Trade", trade_id)
            aggregate([t for t in ledger if t.trade_id != trade_id])

            before_snapshot = self._to_json(trade)
            self._trade_repo.delete(trade_id)
            self._create_revision(trade, RevisionAction.REMOVE, before=before_snapshot, after=None)

    def get_trade(self, trade_id: str) -> Trade:
        """Get trade by ID."""
        trade = self._trade_repo.get_by_id(trade_id)
        if not trade:
            raise NotFoundError("Trade", trade_id)
        return trade

    def list_trades(self, portfolio_id: str, instrument_id: Optional[str] = None) -> list[Trade]:
        """List trades of a portfolio in execution order."""
        return self._trade_repo.list_by_portfolio(portfolio_id, instrument_id=instrument_id)

    def list_revisions(self, trade_id: str) -> list[TradeRevision]:
        """Audit trail of one trade, oldest first."""
        return self._trade_repo.list_revisions_by_trade(trade_id)

    def _validate_trade_create(self, data: TradeCreate) -> None:
        """Validate trade creation input."""
        if not data.portfolio_id:
            raise ValidationError("portfolio_id is required")
        if not data.instrument_id:
            raise ValidationError("instrument_id is required")
        if data.quantity is None or data.quantity <= 0:
            raise ValidationError(f"{data.side.value} requires quantity > 0")
        if data.price is None or data.price <= 0:
            raise ValidationError(f"{data.side.value} requires price > 0")
        if data.fees is None or data.fees < 0:
            raise ValidationError("Fees cannot be negative")

    def _create_revision(
        self,
        trade: Trade,
        action: RevisionAction,
        before: Optional[str],
        after: Optional[str],
    ) -> TradeRevision:
        """Create audit revision for a ledger change."""
        revision = TradeRevision(
            rev_id=str(uuid.uuid4()),
            trade_id=trade.trade_id,
            portfolio_id=trade.portfolio_id,
            rev_time=now_utc(),
            action=action,
            before_json=before,
            after_json=after,
        )
        return self._trade_repo.create_revision(revision)

    @staticmethod
    def _to_json(trade: Trade) -> str:
        """Serialize trade to JSON for revision storage."""
        data = asdict(trade)
        for key, value in data.items():
            if isinstance(value, Decimal):
                data[key] = str(value)
            elif isinstance(value, datetime):
                data[key] = to_utc(value).isoformat()
            elif hasattr(value, "value"):  # Enum
                data[key] = value.value
        return json.dumps(data)
