"""Utility functions for timestamps."""

from datetime import datetime

import pytz


def utc_now() -> datetime:
    """Returns the current time as a timezone-aware UTC datetime."""
    return datetime.now(pytz.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Attaches UTC to naive datetimes read back from MySQL DATETIME columns."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return pytz.utc.localize(dt)
    return dt.astimezone(pytz.utc)


def format_datetime_for_db(dt: datetime | None) -> str | None:
    """Formats a datetime for a MySQL DATETIME(6) column (stored as UTC)."""
    if dt is None:
        return None
    return ensure_utc(dt).strftime("%Y-%m-%d %H:%M:%S.%f")
