"""
Geographic Snapshot Builder

Latest known position of every device that has reported a location, with a
map status and the device's health score attached.
"""

from collections import OrderedDict
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

import structlog

from fleet_insights.models.telemetry_models import (
    ExceptionEvent,
    GeographicData,
    IgnitionEvent,
    MapStatus,
)
from fleet_insights.services.analytics_utils import (
    MAP_CRITICAL_KEYWORDS,
    group_by_device,
    matches_any,
)
from fleet_insights.services.health_scorer import DeviceHealthScorer
from timezone_utils import resolve_now

logger = structlog.get_logger(__name__)

UNKNOWN_LOCATION = "Unknown Location"


class GeographicSnapshotBuilder:
    """Builds one GeographicData marker per located device."""

    EXCEPTION_WINDOW = timedelta(hours=1)
    OFFLINE_AFTER = timedelta(hours=2)
    WARNING_EXCEPTION_COUNT = 2

    def __init__(self, health_scorer: Optional[DeviceHealthScorer] = None):
        self.health_scorer = health_scorer or DeviceHealthScorer()
        logger.debug("GeographicSnapshotBuilder initialized")

    def map_status(
        self,
        last_position: IgnitionEvent,
        device_exceptions: Sequence[ExceptionEvent],
        now: datetime,
    ) -> MapStatus:
        cutoff = now - self.EXCEPTION_WINDOW
        recent = [e for e in device_exceptions if e.timestamp > cutoff]

        if any(matches_any(e.category, MAP_CRITICAL_KEYWORDS) for e in recent):
            return MapStatus.CRITICAL
        if len(recent) > self.WARNING_EXCEPTION_COUNT:
            return MapStatus.WARNING
        if last_position.timestamp < now - self.OFFLINE_AFTER:
            return MapStatus.OFFLINE
        return MapStatus.ONLINE

    def build(
        self,
        ignitions: Sequence[IgnitionEvent],
        exceptions: Sequence[ExceptionEvent],
        now: Optional[datetime] = None,
    ) -> List[GeographicData]:
        now = resolve_now(now)

        # Keep the newest located ignition per device; ties keep the first seen
        latest: "OrderedDict[str, IgnitionEvent]" = OrderedDict()
        for event in ignitions:
            if event.location is None:
                continue
            current = latest.get(event.device_id)
            if current is None or event.timestamp > current.timestamp:
                latest[event.device_id] = event

        ignitions_by_device = group_by_device(ignitions)
        exceptions_by_device = group_by_device(exceptions)

        markers = []
        for device_id, event in latest.items():
            device_exceptions = exceptions_by_device.get(device_id, [])
            health = self.health_scorer.calculate_score(
                device_id, ignitions_by_device.get(device_id, []), device_exceptions, now
            )
            markers.append(
                GeographicData(
                    device_id=device_id,
                    latitude=event.location.lat,
                    longitude=event.location.lon,
                    location=event.address or UNKNOWN_LOCATION,
                    status=self.map_status(event, device_exceptions, now),
                    last_seen=event.timestamp,
                    health_score=health.score,
                )
            )

        logger.debug("Geographic snapshot built", devices=len(markers))
        return markers
