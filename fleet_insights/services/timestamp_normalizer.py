"""
Timestamp Normalizer

Tracker logs carry timestamps in several shapes:
- ISO-8601 strings ("2025-07-23T20:06:36.993609")
- day-first strings ("23/07/2025 20:00:55.143", with or without millis)
- native datetime / date objects
- epoch milliseconds
- missing or garbage values

parse_timestamp() resolves all of them to an aware UTC datetime. When nothing
works it falls back to "now" and logs a warning. That fallback is lossy: an
unparseable record sorts as the most recent one, so callers must tolerate it.
"""

from datetime import date, datetime
from typing import Any, Optional

import pandas as pd
import structlog

from timezone_utils import ensure_utc, epoch_ms_to_utc, resolve_now, to_epoch_ms

logger = structlog.get_logger(__name__)

DAY_FIRST_FORMATS = (
    "%d/%m/%Y %H:%M:%S.%f",
    "%d/%m/%Y %H:%M:%S",
)
DEFAULT_DISPLAY_FORMAT = "%b %d, %Y %H:%M"


def _parse_iso(text: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None


def _parse_day_first(text: str) -> Optional[datetime]:
    for fmt in DAY_FIRST_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def _parse_lenient(text: str) -> Optional[datetime]:
    """Last resort: let pandas guess the format"""
    try:
        parsed = pd.to_datetime(text, utc=True, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if parsed is None or pd.isna(parsed):
        return None
    return parsed.to_pydatetime()


def try_parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Attempt every strategy in order, first success wins.

    Returns:
        Aware UTC datetime, or None if the value cannot be interpreted
    """
    if value is None or value is pd.NaT:
        return None

    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else ensure_utc(value.to_pydatetime())

    if isinstance(value, datetime):
        return ensure_utc(value)

    if isinstance(value, date):
        return ensure_utc(datetime(value.year, value.month, value.day))

    if isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        try:
            return epoch_ms_to_utc(value)
        except (ValueError, OverflowError, OSError):
            return None

    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    for strategy in (_parse_iso, _parse_day_first, _parse_lenient):
        parsed = strategy(text)
        if parsed is not None:
            return ensure_utc(parsed)

    return None


def parse_timestamp(value: Any, now: Optional[datetime] = None) -> datetime:
    """
    Resolve a raw timestamp to an aware UTC datetime.

    Args:
        value: Raw timestamp in any supported shape
        now: Fallback instant (default: current UTC time)

    Returns:
        Parsed instant, or `now` when parsing fails
    """
    parsed = try_parse_timestamp(value)
    if parsed is not None:
        return parsed

    fallback = resolve_now(now)
    logger.warning(
        "Failed to parse timestamp, using current time as fallback",
        raw_value=repr(value),
        fallback=fallback.isoformat(),
    )
    return fallback


def format_timestamp(
    value: Any, fmt: str = DEFAULT_DISPLAY_FORMAT, now: Optional[datetime] = None
) -> str:
    """Display string, e.g. 'Jul 23, 2025 20:00'"""
    return parse_timestamp(value, now).strftime(fmt)


def is_valid_timestamp(value: Any) -> bool:
    """False for missing values and for anything that would fall back to now"""
    return try_parse_timestamp(value) is not None


def get_safe_timestamp(value: Any, now: Optional[datetime] = None) -> int:
    """Epoch milliseconds, safe to use as a sort key"""
    return to_epoch_ms(parse_timestamp(value, now))
