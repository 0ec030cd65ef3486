"""Instrument domain model."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Instrument:
    """Directory entry mapping an instrument id to its display identifiers."""

    instrument_id: str
    symbol: Optional[str] = None
    isin: Optional[str] = None
    name: Optional[str] = None
    currency: str = "EUR"

    @property
    def label(self) -> str:
        """Human readable identifier used in logs and error records."""
        return self.symbol or self.isin or self.instrument_id
