"""Enumerations for domain models."""

from enum import Enum


class TradeSide(str, Enum):
    """Direction of a ledger trade."""

    BUY = "BUY"
    SELL = "SELL"


class RevisionAction(str, Enum):
    """Actions recorded in trade revisions."""

    CREATE = "CREATE"
    REMOVE = "REMOVE"


class InstrumentKind(str, Enum):
    """Pricing classification of an instrument; decides the provider chain."""

    CRYPTO = "CRYPTO"
    DOMESTIC = "DOMESTIC"  # ISIN quoted on a directly supported exchange feed
    GENERIC = "GENERIC"


class PriceOrigin(str, Enum):
    """Tier that produced a resolved price."""

    CACHE = "cache"
    PROVIDER = "provider"
    STORE = "store"
