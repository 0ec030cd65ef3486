"""Instrument directory protocol."""

from typing import Protocol, Optional

from tradefolio.domain.models import Instrument


class InstrumentRepository(Protocol):
    """Interface for the instrument directory."""

    def create(self, instrument: Instrument) -> Instrument:
        """Persist a new instrument."""
        ...

    def get_by_id(self, instrument_id: str) -> Optional[Instrument]:
        """Retrieve instrument by ID."""
        ...

    def get_many(self, instrument_ids: list[str]) -> dict[str, Instrument]:
        """Retrieve several instruments; unknown ids are omitted."""
        ...

    def list_ids(self, limit: Optional[int] = None) -> list[str]:
        """List known instrument ids in a stable order."""
        ...
