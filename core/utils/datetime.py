"""Datetime utilities for common operations."""

from datetime import datetime, timedelta, timezone
from typing import Optional


def now() -> datetime:
    """Get current datetime in UTC."""
    return datetime.now(timezone.utc)


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to timezone-aware UTC.

    Naive values are assumed to already be UTC, which is how the store
    writes them when the driver drops tzinfo (SQLite).
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def add_hours(dt: datetime, hours: int) -> datetime:
    """
    Add hours to a datetime.

    Args:
        dt: Starting datetime
        hours: Number of hours to add (can be negative)

    Returns:
        New datetime
    """
    return dt + timedelta(hours=hours)


def is_within_days(dt: Optional[datetime], days: int, reference: Optional[datetime] = None) -> bool:
    """
    Check if a datetime falls within the last N days.

    Args:
        dt: Datetime to check
        days: Size of the window in days
        reference: Point the window ends at (defaults to now)

    Returns:
        True if ``reference - days <= dt``
    """
    if dt is None:
        return False
    reference = as_utc(reference) if reference else now()
    return as_utc(dt) >= reference - timedelta(days=days)


def is_past(dt: Optional[datetime], reference: Optional[datetime] = None) -> bool:
    """Check if a datetime is strictly before the reference (defaults to now)."""
    if dt is None:
        return False
    reference = as_utc(reference) if reference else now()
    return as_utc(dt) < reference
