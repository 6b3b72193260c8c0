"""
Trend Analyzer - daily activity buckets for the trend charts
"""

from datetime import datetime, time, timedelta, timezone
from typing import List, Optional, Sequence

import structlog

from fleet_insights.models.telemetry_models import (
    ExceptionEvent,
    IgnitionEvent,
    TrendPoint,
)
from fleet_insights.services.analytics_utils import TREND_CRITICAL_KEYWORDS, matches_any
from timezone_utils import resolve_now

logger = structlog.get_logger(__name__)

DATE_LABEL_FORMAT = "%b %d"


class TrendAnalyzer:
    """Buckets events into UTC calendar days, oldest day first."""

    DEFAULT_DAYS = 7

    def __init__(self, default_days: int = DEFAULT_DAYS):
        if default_days <= 0:
            raise ValueError("default_days must be positive")
        self.default_days = default_days
        logger.debug("TrendAnalyzer initialized", default_days=default_days)

    def generate_trend_data(
        self,
        ignitions: Sequence[IgnitionEvent],
        exceptions: Sequence[ExceptionEvent],
        days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> List[TrendPoint]:
        now = resolve_now(now)
        days = days if days is not None else self.default_days
        if days <= 0:
            return []

        today = now.date()
        points = []
        for offset in range(days - 1, -1, -1):
            day = today - timedelta(days=offset)
            day_start = datetime.combine(day, time.min, tzinfo=timezone.utc)
            day_end = day_start + timedelta(days=1)

            day_ignitions = sum(1 for e in ignitions if day_start <= e.timestamp < day_end)
            day_exceptions = [e for e in exceptions if day_start <= e.timestamp < day_end]

            points.append(
                TrendPoint(
                    date=day_start.strftime(DATE_LABEL_FORMAT),
                    exceptions=len(day_exceptions),
                    ignitions=day_ignitions,
                    critical_issues=sum(
                        1 for e in day_exceptions
                        if matches_any(e.category, TREND_CRITICAL_KEYWORDS)
                    ),
                    server_downtime=sum(
                        1 for e in day_exceptions if matches_any(e.category, ("server down",))
                    ),
                )
            )

        return points
