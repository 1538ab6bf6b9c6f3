"""UTC calendar-date helpers for daily buckets and retention.

All date logic operates on UTC.  Timezone-aware inputs are converted to
UTC first; naive inputs are assumed to already be UTC, matching how
activity records store ``start_time``.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_utc(ts: datetime) -> datetime:
    """Return *ts* as an aware UTC datetime.

    Naive values are tagged as UTC without shifting them.
    """
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def utc_date(ts: datetime) -> date:
    """UTC calendar date that *ts* falls on."""
    return to_utc(ts).date()


def date_key(day: date) -> str:
    """``YYYY-MM-DD`` key used for daily buckets."""
    return day.isoformat()


def retention_cutoff(today: date, retention_days: int) -> date:
    """Earliest date still inside the retention window.

    Args:
        today: Reference UTC date of the write.
        retention_days: Number of whole days of history to keep.

    Returns:
        ``today - retention_days``.  Data dated on or after this day is
        kept; anything strictly earlier is pruned.
    """
    return today - timedelta(days=retention_days)
