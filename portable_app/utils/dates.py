"""Date helpers for export windows."""

from __future__ import annotations

from datetime import datetime, timezone

# Smallest timestamp the platform database accepts; stands in for "no lower bound".
MIN_DB_TIME = datetime(1753, 1, 1, tzinfo=timezone.utc)


def to_local(value: datetime) -> datetime:
    """Convert to an aware local-time datetime. Naive values are taken as UTC, as stored."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone()


def within_window(value: datetime | None, from_date: datetime, to_date: datetime) -> bool:
    """Inclusive window check; records without a timestamp are never in a window."""

    if value is None:
        return False
    return to_local(from_date) <= to_local(value) <= to_local(to_date)
