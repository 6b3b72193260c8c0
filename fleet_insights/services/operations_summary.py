"""
Operations Summary

Operator-facing overview built from the raw event streams:
- severity catalogue keyed by exact exception category
- look-back presets and event filters
- per-device status rows (critical > warning > online > offline)
- operational insights and headline log summary
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, TypeVar

import structlog

from fleet_insights.models.operations_models import (
    DeviceOperationalStatus,
    DeviceStatus,
    InsightType,
    LogSummary,
    OperationalInsight,
    SeverityLevel,
    SeverityLevelName,
    TimeFilter,
)
from fleet_insights.models.telemetry_models import ExceptionEvent, IgnitionEvent
from timezone_utils import resolve_now

logger = structlog.get_logger(__name__)

E = TypeVar("E", IgnitionEvent, ExceptionEvent)

# ═══════════════════════════════════════════════════════════════════════════════
# CATALOGUES
# ═══════════════════════════════════════════════════════════════════════════════

DEFAULT_SEVERITY_KEY = "Default"

SEVERITY_MAPPING: Dict[str, SeverityLevel] = {
    "Server Down": SeverityLevel(
        level=SeverityLevelName.CRITICAL,
        description="Service completely unavailable",
        impact="End users cannot access service",
    ),
    "Connection Timeout": SeverityLevel(
        level=SeverityLevelName.HIGH,
        description="Network connectivity issues",
        impact="Intermittent service disruption",
    ),
    "Retry Phase Change": SeverityLevel(
        level=SeverityLevelName.MEDIUM,
        description="System attempting recovery",
        impact="Service degradation possible",
    ),
    "GPS Signal Lost": SeverityLevel(
        level=SeverityLevelName.MEDIUM,
        description="Location tracking unavailable",
        impact="Tracking accuracy affected",
    ),
    "Low Battery": SeverityLevel(
        level=SeverityLevelName.LOW,
        description="Device power running low",
        impact="Device may shut down soon",
    ),
    DEFAULT_SEVERITY_KEY: SeverityLevel(
        level=SeverityLevelName.INFO,
        description="General system event",
        impact="No immediate impact",
    ),
}

TIME_FILTERS: List[TimeFilter] = [
    TimeFilter(label="Last Hour", value="1h", hours=1),
    TimeFilter(label="Last 4 Hours", value="4h", hours=4),
    TimeFilter(label="Today", value="24h", hours=24),
    TimeFilter(label="Last 3 Days", value="72h", hours=72),
    TimeFilter(label="This Week", value="168h", hours=168),
    TimeFilter(label="All Time", value="all", hours=0),
]

DEFAULT_TIME_FILTER = "24h"

STATUS_PRIORITY = {
    DeviceOperationalStatus.CRITICAL: 4,
    DeviceOperationalStatus.WARNING: 3,
    DeviceOperationalStatus.ONLINE: 2,
    DeviceOperationalStatus.OFFLINE: 1,
}


def get_severity(category: Optional[str]) -> SeverityLevel:
    """Exact, case-sensitive category lookup with a default entry"""
    return SEVERITY_MAPPING.get(category or "", SEVERITY_MAPPING[DEFAULT_SEVERITY_KEY])


def get_time_filter(value: str) -> TimeFilter:
    """Preset by value ("1h", "all", ...); unknown values fall back to 24h"""
    for time_filter in TIME_FILTERS:
        if time_filter.value == value:
            return time_filter
    return next(f for f in TIME_FILTERS if f.value == DEFAULT_TIME_FILTER)


# ═══════════════════════════════════════════════════════════════════════════════
# FILTERS
# ═══════════════════════════════════════════════════════════════════════════════


def filter_by_time(
    events: Sequence[E], hours: float, now: Optional[datetime] = None
) -> List[E]:
    """Events at or after now - hours. hours == 0 keeps everything."""
    if not hours:
        return list(events)
    cutoff = resolve_now(now) - timedelta(hours=hours)
    return [e for e in events if e.timestamp >= cutoff]


def filter_by_device(events: Sequence[E], search: str) -> List[E]:
    """Case-insensitive substring match on device id"""
    if not search:
        return list(events)
    term = search.lower()
    return [e for e in events if term in e.device_id.lower()]


def filter_by_severity(
    exceptions: Sequence[ExceptionEvent], level: Optional[str]
) -> List[ExceptionEvent]:
    """Keep exceptions whose catalogue severity equals level ("all" keeps all)"""
    if not level or level == "all":
        return list(exceptions)
    return [e for e in exceptions if get_severity(e.category).level.value == level]


# ═══════════════════════════════════════════════════════════════════════════════
# SUMMARY BUILDER
# ═══════════════════════════════════════════════════════════════════════════════


class OperationsSummaryBuilder:
    """Builds device status rows, insights and the log summary."""

    ONLINE_WITHIN = timedelta(hours=2)
    WARNING_EXCEPTION_COUNT = 2
    PROBLEM_DEVICE_EXCEPTIONS = 3
    RECENT_ACTIVITY_WINDOW = timedelta(hours=1)

    def __init__(self, online_within_hours: Optional[float] = None):
        self.online_within = (
            timedelta(hours=online_within_hours)
            if online_within_hours is not None
            else self.ONLINE_WITHIN
        )
        logger.debug(
            "OperationsSummaryBuilder initialized",
            online_within_hours=self.online_within.total_seconds() / 3600,
        )

    def build_device_statuses(
        self,
        ignitions: Sequence[IgnitionEvent],
        exceptions: Sequence[ExceptionEvent],
        now: Optional[datetime] = None,
    ) -> List[DeviceStatus]:
        now = resolve_now(now)
        rows: Dict[str, DeviceStatus] = {}

        def row_for(device_id: str, timestamp: datetime) -> DeviceStatus:
            row = rows.get(device_id)
            if row is None:
                row = DeviceStatus(
                    device_id=device_id,
                    last_seen=timestamp,
                    status=DeviceOperationalStatus.OFFLINE,
                )
                rows[device_id] = row
            elif timestamp > row.last_seen:
                row.last_seen = timestamp
            return row

        for event in ignitions:
            row_for(event.device_id, event.timestamp).ignition_count += 1

        for event in exceptions:
            row = row_for(event.device_id, event.timestamp)
            row.exception_count += 1
            row.last_exception = event.category or "Unknown error"
            if get_severity(event.category).is_serious:
                row.critical_exceptions += 1

        for row in rows.values():
            if row.critical_exceptions > 0:
                row.status = DeviceOperationalStatus.CRITICAL
            elif row.exception_count > self.WARNING_EXCEPTION_COUNT:
                row.status = DeviceOperationalStatus.WARNING
            elif now - row.last_seen < self.online_within:
                row.status = DeviceOperationalStatus.ONLINE
            else:
                row.status = DeviceOperationalStatus.OFFLINE

        return sorted(rows.values(), key=lambda r: STATUS_PRIORITY[r.status], reverse=True)

    def build_insights(
        self,
        ignitions: Sequence[IgnitionEvent],
        exceptions: Sequence[ExceptionEvent],
        now: Optional[datetime] = None,
    ) -> List[OperationalInsight]:
        now = resolve_now(now)
        insights = []

        server_down = [e for e in exceptions if "Server Down" in (e.category or "")]
        if server_down:
            insights.append(
                OperationalInsight(
                    type=InsightType.CRITICAL,
                    title="Server Connectivity Issues",
                    description="Multiple devices reporting server unavailability",
                    count=len(server_down),
                    devices=list(dict.fromkeys(e.device_id for e in server_down)),
                    action="Check server status and network connectivity",
                )
            )

        counts: Dict[str, int] = {}
        for event in exceptions:
            counts[event.device_id] = counts.get(event.device_id, 0) + 1
        problematic = [d for d, c in counts.items() if c >= self.PROBLEM_DEVICE_EXCEPTIONS]
        if problematic:
            insights.append(
                OperationalInsight(
                    type=InsightType.WARNING,
                    title="Devices with High Exception Rate",
                    description="Devices reporting multiple exceptions",
                    count=len(problematic),
                    devices=problematic,
                    action="Investigate device health and connectivity",
                )
            )

        recent = [e for e in ignitions if now - e.timestamp < self.RECENT_ACTIVITY_WINDOW]
        if recent:
            insights.append(
                OperationalInsight(
                    type=InsightType.INFO,
                    title="Recent Vehicle Activity",
                    description="Vehicles with recent ignition events",
                    count=len(recent),
                    devices=list(dict.fromkeys(e.device_id for e in recent)),
                )
            )

        return insights

    def build_log_summary(
        self,
        ignitions: Sequence[IgnitionEvent],
        exceptions: Sequence[ExceptionEvent],
        now: Optional[datetime] = None,
    ) -> LogSummary:
        now = resolve_now(now)
        devices = {e.device_id for e in ignitions} | {e.device_id for e in exceptions}
        return LogSummary(
            total_logs=len(ignitions) + len(exceptions),
            critical_issues=sum(1 for e in exceptions if get_severity(e.category).is_serious),
            devices_affected=len(devices),
            last_update=now,
        )
