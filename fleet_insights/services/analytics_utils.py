"""
Shared helpers for the analytics services

Keyword catalogues for free-text exception matching, rounding that matches
the dashboard's half-up behaviour, least-squares slope and device grouping.
"""

import math
import uuid
from collections import OrderedDict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

from timezone_utils import to_epoch_ms

T = TypeVar("T")

# ═══════════════════════════════════════════════════════════════════════════════
# KEYWORD CATALOGUES (case-insensitive substring match)
# ═══════════════════════════════════════════════════════════════════════════════

FAILURE_KEYWORDS: Tuple[str, ...] = ("server down", "timeout", "error")
SERVER_ISSUE_KEYWORDS: Tuple[str, ...] = (
    "server down",
    "server unavailable",
    "connection timeout",
)
CONNECTION_ISSUE_KEYWORDS: Tuple[str, ...] = ("connection", "timeout", "server")
MAP_CRITICAL_KEYWORDS: Tuple[str, ...] = ("server down", "critical")
TREND_CRITICAL_KEYWORDS: Tuple[str, ...] = ("server down", "connection timeout")

OUTAGE_KEYWORDS: Tuple[str, ...] = (
    "server down",
    "server unavailable",
    "connection failed",
    "network error",
)
RECOVERY_KEYWORDS: Tuple[str, ...] = (
    "server up",
    "connection restored",
    "network restored",
    "server available",
    "connection established",
    "back online",
    "connectivity restored",
)
TIMEOUT_KEYWORDS: Tuple[str, ...] = ("timeout", "retry", "attempting reconnection")


def matches_any(text: Optional[str], keywords: Iterable[str]) -> bool:
    """True if any keyword occurs in text (case-insensitive)"""
    if not text:
        return False
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


# ═══════════════════════════════════════════════════════════════════════════════
# NUMERICS
# ═══════════════════════════════════════════════════════════════════════════════


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (2.5 -> 3), unlike round()"""
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean, 0.0 for an empty sequence"""
    if not values:
        return 0.0
    return sum(values) / len(values)


def linear_regression_slope(values: Sequence[float]) -> float:
    """
    Ordinary least-squares slope of values against their index (0..n-1).

    Index spacing is used rather than elapsed time, so irregular sampling
    intervals are treated as evenly spaced.
    """
    n = len(values)
    if n < 2:
        return 0.0

    x = list(range(n))
    sum_x = sum(x)
    sum_y = sum(values)
    sum_xy = sum(xi * yi for xi, yi in zip(x, values))
    sum_x2 = sum(xi * xi for xi in x)

    denominator = n * sum_x2 - sum_x * sum_x
    if denominator == 0:
        return 0.0

    return (n * sum_xy - sum_x * sum_y) / denominator


# ═══════════════════════════════════════════════════════════════════════════════
# GROUPING / IDS
# ═══════════════════════════════════════════════════════════════════════════════


def group_by_device(events: Iterable[T]) -> "OrderedDict[str, List[T]]":
    """Group events by device_id, preserving first-seen device order"""
    groups: "OrderedDict[str, List[T]]" = OrderedDict()
    for event in events:
        groups.setdefault(event.device_id, []).append(event)
    return groups


def device_ids_in_order(*collections: Iterable) -> List[str]:
    """Distinct device ids across collections, in first-seen order"""
    seen: Dict[str, None] = {}
    for collection in collections:
        for event in collection:
            seen.setdefault(event.device_id, None)
    return list(seen)


def transient_id(prefix: str, device_id: str, now: datetime) -> str:
    """Pass-scoped identifier, e.g. voltage_<device>_<epoch ms>"""
    return f"{prefix}_{device_id}_{to_epoch_ms(now)}"


def random_suffix(length: int = 9) -> str:
    return uuid.uuid4().hex[:length]
