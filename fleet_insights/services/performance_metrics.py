"""
Performance Metrics Calculator

Weekly reliability figures per device: hourly uptime coverage, MTBF,
exception counts, last contact, voltage average and location coverage.
"""

from datetime import datetime, timedelta
from typing import List, Optional, Sequence

import structlog

from fleet_insights.models.telemetry_models import (
    DevicePerformanceMetrics,
    ExceptionEvent,
    IgnitionEvent,
)
from fleet_insights.services.analytics_utils import (
    FAILURE_KEYWORDS,
    device_ids_in_order,
    matches_any,
    mean,
)
from timezone_utils import resolve_now

logger = structlog.get_logger(__name__)

WINDOW_HOURS = 24 * 7
HOUR_BUCKET_FORMAT = "%Y-%m-%d-%H"


class PerformanceMetricsCalculator:
    """Computes DevicePerformanceMetrics over a trailing 7-day window."""

    def __init__(
        self,
        window_hours: int = WINDOW_HOURS,
        failure_keywords: Sequence[str] = FAILURE_KEYWORDS,
    ):
        if window_hours <= 0:
            raise ValueError("window_hours must be positive")
        self.window_hours = window_hours
        self.failure_keywords = tuple(failure_keywords)
        logger.debug("PerformanceMetricsCalculator initialized", window_hours=window_hours)

    def is_failure(self, event: ExceptionEvent) -> bool:
        return matches_any(event.category, self.failure_keywords)

    def calculate(
        self,
        device_id: str,
        ignitions: Sequence[IgnitionEvent],
        exceptions: Sequence[ExceptionEvent],
        now: Optional[datetime] = None,
    ) -> DevicePerformanceMetrics:
        now = resolve_now(now)
        device_ignitions = [e for e in ignitions if e.device_id == device_id]
        device_exceptions = [e for e in exceptions if e.device_id == device_id]
        timestamps = [e.timestamp for e in device_ignitions] + [
            e.timestamp for e in device_exceptions
        ]

        # Distinct UTC hour buckets with activity inside the window
        cutoff = now - timedelta(hours=self.window_hours)
        active_hours = {
            ts.strftime(HOUR_BUCKET_FORMAT) for ts in timestamps if ts > cutoff
        }
        uptime_pct = len(active_hours) / self.window_hours * 100

        failures = [e for e in device_exceptions if self.is_failure(e)]
        if len(failures) > 1:
            mtbf = self.window_hours / len(failures)
        else:
            mtbf = float(self.window_hours)

        voltages = [e.voltage for e in device_ignitions if e.has_voltage]

        if device_ignitions:
            located = sum(1 for e in device_ignitions if e.location is not None)
            location_accuracy = located / len(device_ignitions) * 100
        else:
            location_accuracy = 0.0

        return DevicePerformanceMetrics(
            device_id=device_id,
            uptime_pct=round(uptime_pct, 2),
            mtbf_hours=round(mtbf, 2),
            total_exceptions=len(device_exceptions),
            critical_exceptions=len(failures),
            last_seen=max(timestamps) if timestamps else now,
            average_voltage=round(mean(voltages), 2),
            location_accuracy=round(location_accuracy, 2),
        )

    def calculate_fleet(
        self,
        ignitions: Sequence[IgnitionEvent],
        exceptions: Sequence[ExceptionEvent],
        now: Optional[datetime] = None,
    ) -> List[DevicePerformanceMetrics]:
        now = resolve_now(now)
        return [
            self.calculate(device_id, ignitions, exceptions, now)
            for device_id in device_ids_in_order(ignitions, exceptions)
        ]
