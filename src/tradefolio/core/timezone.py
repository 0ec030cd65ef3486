"""Timezone utilities. All timestamps are handled in UTC."""

from datetime import datetime
from typing import Optional

import pytz
from dateutil import parser as date_parser

UTC_TZ = pytz.utc


def now_utc() -> datetime:
    """Return current time in UTC."""
    return datetime.now(UTC_TZ)


def to_utc(dt: datetime) -> datetime:
    """Convert a datetime to UTC."""
    if dt.tzinfo is None:
        # Naive datetimes come back from SQLite and are stored as UTC
        return UTC_TZ.localize(dt)
    return dt.astimezone(UTC_TZ)


def from_timestamp(seconds: float) -> datetime:
    """Convert a unix timestamp (seconds) to an aware UTC datetime."""
    return datetime.fromtimestamp(seconds, UTC_TZ)


def parse_datetime_utc(value: str, default_tz: Optional[pytz.BaseTzInfo] = None) -> datetime:
    """
    Parse a datetime string and return it in UTC.

    If no timezone is provided in the string, assumes ``default_tz`` (UTC by default).
    """
    dt = date_parser.parse(value)
    if dt.tzinfo is None:
        tz = default_tz or UTC_TZ
        dt = tz.localize(dt)
    return to_utc(dt)
