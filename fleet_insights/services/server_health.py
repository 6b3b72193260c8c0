"""
Server Health Aggregator - fleet-wide view of the tracking server's availability
"""

from datetime import datetime, timedelta
from typing import Optional, Sequence

import structlog

from fleet_insights.models.telemetry_models import (
    ExceptionEvent,
    ServerHealthSnapshot,
    ServerStatus,
)
from fleet_insights.services.analytics_utils import SERVER_ISSUE_KEYWORDS, matches_any
from timezone_utils import resolve_now

logger = structlog.get_logger(__name__)

MINUTES_PER_DAY = 24 * 60


class ServerHealthAggregator:
    """
    Derives server status from server-related exceptions reported by devices.

    Each server exception is assumed to cost a flat number of minutes of
    downtime. Response times are nominal values per status, not measurements.
    """

    DOWNTIME_MINUTES_PER_EXCEPTION = 2
    DEGRADED_EXCEPTION_COUNT = 5
    RESPONSE_TIME_MS = {
        ServerStatus.ONLINE: 150,
        ServerStatus.DEGRADED: 500,
        ServerStatus.OFFLINE: 0,
    }

    def __init__(self, degraded_exception_count: Optional[int] = None):
        self.degraded_exception_count = (
            degraded_exception_count
            if degraded_exception_count is not None
            else self.DEGRADED_EXCEPTION_COUNT
        )
        logger.debug(
            "ServerHealthAggregator initialized",
            degraded_after=self.degraded_exception_count,
        )

    def calculate(
        self, exceptions: Sequence[ExceptionEvent], now: Optional[datetime] = None
    ) -> ServerHealthSnapshot:
        now = resolve_now(now)
        day_ago = now - timedelta(hours=24)
        hour_ago = now - timedelta(hours=1)

        server_exceptions = [
            e
            for e in exceptions
            if e.timestamp > day_ago and matches_any(e.category, SERVER_ISSUE_KEYWORDS)
        ]
        recent_server_down = [
            e
            for e in server_exceptions
            if e.timestamp > hour_ago and matches_any(e.category, ("server down",))
        ]

        if recent_server_down:
            status = ServerStatus.OFFLINE
        elif len(server_exceptions) > self.degraded_exception_count:
            status = ServerStatus.DEGRADED
        else:
            status = ServerStatus.ONLINE

        downtime_minutes = len(server_exceptions) * self.DOWNTIME_MINUTES_PER_EXCEPTION
        uptime = max(0.0, (MINUTES_PER_DAY - downtime_minutes) / MINUTES_PER_DAY * 100)

        total_devices = len({e.device_id for e in exceptions})
        affected_devices = len({e.device_id for e in server_exceptions})

        snapshot = ServerHealthSnapshot(
            status=status,
            uptime_pct=round(uptime, 2),
            response_time_ms=self.RESPONSE_TIME_MS[status],
            connected_devices=total_devices - affected_devices,
            total_devices=total_devices,
            last_downtime=max((e.timestamp for e in server_exceptions), default=None),
            downtime_minutes_today=downtime_minutes,
        )

        if status != ServerStatus.ONLINE:
            logger.warning(
                "Server health degraded",
                status=status.value,
                server_exceptions=len(server_exceptions),
            )
        return snapshot
