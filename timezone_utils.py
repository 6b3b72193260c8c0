"""
Fleet Insights - Timezone Utilities

Provides consistent timezone handling across the analytics engine.

IMPORTANT: All internal timestamps are UTC.
Telemetry from the trackers arrives in mixed formats, some of them naive;
naive values are treated as UTC once they cross the ingestion boundary.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime

    Returns:
        Timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)


def epoch_ms_to_utc(epoch_ms: float) -> datetime:
    """Convert Unix epoch milliseconds to timezone-aware UTC datetime"""
    return datetime.fromtimestamp(epoch_ms / 1000.0, tz=timezone.utc)


def to_epoch_ms(dt: datetime) -> int:
    """Convert a datetime to Unix epoch milliseconds (naive = UTC)"""
    return int(ensure_utc(dt).timestamp() * 1000)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure datetime is timezone-aware UTC

    Args:
        dt: Input datetime (can be naive, UTC, or local)

    Returns:
        Timezone-aware UTC datetime, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        # Naive - assume UTC
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def resolve_now(now: Optional[datetime] = None) -> datetime:
    """Return `now` as aware UTC, defaulting to the current wall clock"""
    return ensure_utc(now) if now is not None else utc_now()


def hours_ago(hours: float, now: Optional[datetime] = None) -> datetime:
    """Instant `hours` before `now` (default: current UTC time)"""
    return resolve_now(now) - timedelta(hours=hours)


def minutes_between(start: datetime, end: datetime) -> float:
    """Elapsed minutes from start to end (negative if end precedes start)"""
    return (ensure_utc(end) - ensure_utc(start)).total_seconds() / 60.0
