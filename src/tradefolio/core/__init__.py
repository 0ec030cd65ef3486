"""Core utilities and shared functionality."""

from tradefolio.core.timezone import (
    now_utc,
    to_utc,
    from_timestamp,
    parse_datetime_utc,
    UTC_TZ,
)
from tradefolio.core.exceptions import (
    AppError,
    ValidationError,
    NotFoundError,
    InsufficientQuantityError,
    ProviderError,
    RateLimitedError,
    QuoteUnavailableError,
    CacheError,
    SnapshotJobError,
)

__all__ = [
    "now_utc",
    "to_utc",
    "from_timestamp",
    "parse_datetime_utc",
    "UTC_TZ",
    "AppError",
    "ValidationError",
    "NotFoundError",
    "InsufficientQuantityError",
    "ProviderError",
    "RateLimitedError",
    "QuoteUnavailableError",
    "CacheError",
    "SnapshotJobError",
]
