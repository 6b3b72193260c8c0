"""
Network Incident Engine

Turns free-text exception logs into a network incident timeline:

1. Extraction: each exception is classified as outage, recovery or timeout
   by an ordered keyword rule list (first match wins). Unmatched
   exceptions are ignored. Events are sorted oldest first.
2. Grouping: a single left-to-right pass keeps one "current incident".
   An outage more than the incident window after the current incident's
   start, or arriving after it resolved, opens a new incident; otherwise the
   device joins the current one.
   A recovery marks the device recovered in the first ongoing incident that
   contains it; when every affected device has recovered the incident is
   resolved. Timeouts are recorded but never open or close incidents.
3. Metrics: fleet recovery statistics over the incidents.

Resolved incidents are never reopened; a later outage on the same device
belongs to a new incident.

Working state (outage start per device, current incident) lives only for
the duration of one call.
"""

from collections import Counter
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

import structlog

from fleet_insights.models.network_models import (
    DeviceConnectionState,
    DeviceRecoveryStatus,
    FrequentlyAffectedDevice,
    IncidentSeverity,
    IncidentStatus,
    NetworkAnalysis,
    NetworkEvent,
    NetworkEventType,
    NetworkHealth,
    NetworkIncident,
    NetworkStatus,
    RecoveryMetrics,
    RecoveryPattern,
)
from fleet_insights.models.telemetry_models import ExceptionEvent, IgnitionEvent
from fleet_insights.services.analytics_utils import (
    OUTAGE_KEYWORDS,
    RECOVERY_KEYWORDS,
    TIMEOUT_KEYWORDS,
    clamp,
    matches_any,
    mean,
    random_suffix,
    round_half_up,
)
from timezone_utils import minutes_between, resolve_now, to_epoch_ms

logger = structlog.get_logger(__name__)

# Evaluated top to bottom, first match wins
CLASSIFICATION_RULES: Tuple[Tuple[NetworkEventType, Tuple[str, ...]], ...] = (
    (NetworkEventType.OUTAGE, OUTAGE_KEYWORDS),
    (NetworkEventType.RECOVERY, RECOVERY_KEYWORDS),
    (NetworkEventType.TIMEOUT, TIMEOUT_KEYWORDS),
)

DEFAULT_EVENT_DETAIL = "Network event detected"


def classify_exception(event: ExceptionEvent) -> Optional[NetworkEventType]:
    """Outage / recovery / timeout, or None for non-network exceptions"""
    for kind, keywords in CLASSIFICATION_RULES:
        if any(matches_any(field, keywords) for field in event.text_fields):
            return kind
    return None


def determine_recovery_pattern(incident: NetworkIncident) -> RecoveryPattern:
    """
    Coarse classification of how an incident's devices came back.

    Full recovery counts as simultaneous because per-device recovery timing
    is not compared.
    """
    if not incident.recovered_devices:
        return RecoveryPattern.SIMULTANEOUS

    rate = len(incident.recovered_devices) / len(incident.affected_devices)
    if rate >= 1:
        return RecoveryPattern.SIMULTANEOUS
    if rate > 0.8:
        return RecoveryPattern.GRADUAL
    return RecoveryPattern.PARTIAL


def determine_severity(
    impact_pct: int, duration_minutes: Optional[int]
) -> IncidentSeverity:
    duration = duration_minutes or 0
    if impact_pct > 50 or duration > 30:
        return IncidentSeverity.CRITICAL
    if impact_pct > 20 or duration > 10:
        return IncidentSeverity.HIGH
    return IncidentSeverity.MEDIUM


class NetworkIncidentEngine:
    """
    Groups network events into incidents and computes recovery analytics.

    Example Usage:
        engine = NetworkIncidentEngine(total_device_count=25)
        analysis = engine.analyze(ignitions, exceptions, now=now)
        status = engine.get_network_status(analysis.events, analysis.incidents, now=now)
    """

    DEFAULT_CONFIG = {
        "incident_window_minutes": 5.0,
        "total_device_count": 10,
        "status_window_minutes": 30.0,
        "outage_device_threshold": 3,
    }

    FREQUENTLY_AFFECTED_MIN_INCIDENTS = 2
    FREQUENTLY_AFFECTED_LIMIT = 5

    def __init__(
        self,
        incident_window_minutes: Optional[float] = None,
        total_device_count: Optional[int] = None,
        status_window_minutes: Optional[float] = None,
        outage_device_threshold: Optional[int] = None,
    ):
        """
        Initialize NetworkIncidentEngine.

        Args:
            incident_window_minutes: Outages within this many minutes of an
                incident's start join that incident (default 5)
            total_device_count: Estimated fleet size used for impact
                percentage (default 10). Non-positive values yield 0% impact.
            status_window_minutes: Look-back for the live network status (default 30)
            outage_device_threshold: Affected devices above which the live
                status is "outage" rather than "degraded" (default 3)
        """
        cfg = self.DEFAULT_CONFIG
        self.incident_window = timedelta(
            minutes=incident_window_minutes
            if incident_window_minutes is not None
            else cfg["incident_window_minutes"]
        )
        self.total_device_count = (
            total_device_count
            if total_device_count is not None
            else cfg["total_device_count"]
        )
        self.status_window = timedelta(
            minutes=status_window_minutes
            if status_window_minutes is not None
            else cfg["status_window_minutes"]
        )
        self.outage_device_threshold = (
            outage_device_threshold
            if outage_device_threshold is not None
            else cfg["outage_device_threshold"]
        )

        if self.incident_window <= timedelta(0):
            raise ValueError("incident_window_minutes must be positive")

        logger.debug(
            "NetworkIncidentEngine initialized",
            window_minutes=self.incident_window.total_seconds() / 60,
            total_devices=self.total_device_count,
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # EXTRACTION
    # ═══════════════════════════════════════════════════════════════════════════

    def extract_network_events(
        self, exceptions: Sequence[ExceptionEvent]
    ) -> List[NetworkEvent]:
        events = []
        for exception in exceptions:
            kind = classify_exception(exception)
            if kind is None:
                continue
            events.append(
                NetworkEvent(
                    id=exception.id,
                    device_id=exception.device_id,
                    timestamp=exception.timestamp,
                    kind=kind,
                    detail=exception.detail or exception.category or DEFAULT_EVENT_DETAIL,
                )
            )

        # Stable sort keeps arrival order for identical timestamps
        events.sort(key=lambda e: e.timestamp)
        return events

    # ═══════════════════════════════════════════════════════════════════════════
    # GROUPING
    # ═══════════════════════════════════════════════════════════════════════════

    def impact_pct(self, affected_count: int) -> int:
        if self.total_device_count <= 0:
            return 0
        return int(clamp(round_half_up(affected_count / self.total_device_count * 100), 0, 100))

    def _refresh(self, incident: NetworkIncident) -> None:
        incident.impact_pct = self.impact_pct(len(incident.affected_devices))
        incident.severity = determine_severity(incident.impact_pct, incident.duration_minutes)

    def _open_incident(self, event: NetworkEvent, now: datetime) -> NetworkIncident:
        incident = NetworkIncident(
            id=f"incident_{to_epoch_ms(now)}_{random_suffix()}",
            start_time=event.timestamp,
            affected_devices={event.device_id},
        )
        self._refresh(incident)
        return incident

    def group_into_incidents(
        self, events: Sequence[NetworkEvent], now: Optional[datetime] = None
    ) -> List[NetworkIncident]:
        """
        Single pass over time-ordered events.

        Sets `incident_id` on every outage event and on every recovery event
        that was matched to an incident.
        """
        now = resolve_now(now)
        incidents: List[NetworkIncident] = []
        outage_started: Dict[str, datetime] = {}
        current: Optional[NetworkIncident] = None

        for event in events:
            if event.kind == NetworkEventType.OUTAGE:
                outage_started[event.device_id] = event.timestamp

                if (
                    current is None
                    or current.is_resolved
                    or event.timestamp - current.start_time > self.incident_window
                ):
                    current = self._open_incident(event, now)
                    incidents.append(current)
                elif event.device_id not in current.affected_devices:
                    current.affected_devices.add(event.device_id)
                    current.recovery_pattern = determine_recovery_pattern(current)
                    self._refresh(current)

                event.incident_id = current.id

            elif event.kind == NetworkEventType.RECOVERY:
                if event.device_id not in outage_started:
                    continue

                incident = next(
                    (
                        i
                        for i in incidents
                        if i.status == IncidentStatus.ONGOING
                        and event.device_id in i.affected_devices
                    ),
                    None,
                )
                if incident is not None:
                    incident.recovered_devices.add(event.device_id)

                    if incident.recovered_devices == incident.affected_devices:
                        incident.status = IncidentStatus.RESOLVED
                        incident.end_time = event.timestamp
                        incident.duration_minutes = round_half_up(
                            minutes_between(incident.start_time, event.timestamp)
                        )
                        logger.info(
                            "Network incident resolved",
                            incident_id=incident.id,
                            devices=len(incident.affected_devices),
                            duration_minutes=incident.duration_minutes,
                        )

                    incident.recovery_pattern = determine_recovery_pattern(incident)
                    self._refresh(incident)
                    event.incident_id = incident.id

                del outage_started[event.device_id]

        # Final impact/severity from the completed pass
        for incident in incidents:
            self._refresh(incident)

        return incidents

    # ═══════════════════════════════════════════════════════════════════════════
    # METRICS
    # ═══════════════════════════════════════════════════════════════════════════

    def calculate_recovery_metrics(
        self, incidents: Sequence[NetworkIncident]
    ) -> RecoveryMetrics:
        resolved = [i for i in incidents if i.is_resolved]
        durations = [i.duration_minutes or 0 for i in resolved]

        appearances = Counter()
        for incident in incidents:
            appearances.update(incident.affected_devices)

        frequent = sorted(
            (
                (device_id, count)
                for device_id, count in appearances.items()
                if count > self.FREQUENTLY_AFFECTED_MIN_INCIDENTS
            ),
            key=lambda item: item[1],
            reverse=True,
        )[: self.FREQUENTLY_AFFECTED_LIMIT]

        patterns = {pattern.value: 0 for pattern in RecoveryPattern}
        for incident in incidents:
            patterns[incident.recovery_pattern.value] += 1

        return RecoveryMetrics(
            total_outages=len(incidents),
            average_outage_minutes=round_half_up(mean(durations)) if durations else 0,
            longest_outage_minutes=max(durations, default=0),
            shortest_outage_minutes=min(durations, default=0),
            recovery_rate=(
                round_half_up(len(resolved) / len(incidents) * 100) if resolved else 0
            ),
            frequently_affected_devices=[
                FrequentlyAffectedDevice(device_id=d, incident_count=c) for d, c in frequent
            ],
            recovery_patterns=patterns,
        )

    def analyze(
        self,
        ignitions: Sequence[IgnitionEvent],
        exceptions: Sequence[ExceptionEvent],
        now: Optional[datetime] = None,
    ) -> NetworkAnalysis:
        """
        Full pass: extract, group, measure.

        Ignition events are accepted for interface symmetry with the other
        analytics passes; only exceptions carry network signals.
        """
        now = resolve_now(now)
        events = self.extract_network_events(exceptions)
        incidents = self.group_into_incidents(events, now)
        metrics = self.calculate_recovery_metrics(incidents)

        logger.debug(
            "Network analysis complete",
            events=len(events),
            incidents=len(incidents),
            ongoing=sum(1 for i in incidents if not i.is_resolved),
        )
        return NetworkAnalysis(incidents=incidents, events=events, metrics=metrics)

    # ═══════════════════════════════════════════════════════════════════════════
    # LIVE STATUS
    # ═══════════════════════════════════════════════════════════════════════════

    def get_network_status(
        self,
        events: Sequence[NetworkEvent],
        incidents: Optional[Sequence[NetworkIncident]] = None,
        now: Optional[datetime] = None,
    ) -> NetworkStatus:
        """
        Network condition over the trailing status window.

        A device is currently affected if it has an outage in the window with
        no later recovery in the window.
        """
        now = resolve_now(now)
        recent = [e for e in events if now - e.timestamp < self.status_window]
        recoveries = [e for e in recent if e.kind == NetworkEventType.RECOVERY]

        affected: List[str] = []
        for outage in (e for e in recent if e.kind == NetworkEventType.OUTAGE):
            recovered = any(
                r.device_id == outage.device_id and r.timestamp > outage.timestamp
                for r in recoveries
            )
            if not recovered and outage.device_id not in affected:
                affected.append(outage.device_id)

        if len(affected) > self.outage_device_threshold:
            status = NetworkHealth.OUTAGE
        elif affected:
            status = NetworkHealth.DEGRADED
        else:
            status = NetworkHealth.HEALTHY

        return NetworkStatus(
            status=status,
            affected_devices=affected,
            last_incident=incidents[-1] if incidents else None,
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # PER-DEVICE RECOVERY
    # ═══════════════════════════════════════════════════════════════════════════

    def get_device_recovery_status(
        self,
        device_id: str,
        events: Sequence[NetworkEvent],
        now: Optional[datetime] = None,
    ) -> DeviceRecoveryStatus:
        now = resolve_now(now)
        device_events = sorted(
            (e for e in events if e.device_id == device_id), key=lambda e: e.timestamp
        )
        outages = [e for e in device_events if e.kind == NetworkEventType.OUTAGE]
        recoveries = [e for e in device_events if e.kind == NetworkEventType.RECOVERY]
        last_event = device_events[-1] if device_events else None

        if last_event is not None and last_event.kind == NetworkEventType.OUTAGE:
            state = DeviceConnectionState.OFFLINE
        elif last_event is not None and last_event.kind == NetworkEventType.TIMEOUT:
            state = DeviceConnectionState.RECOVERING
        else:
            state = DeviceConnectionState.ONLINE

        # Each outage pairs with the nearest following recovery
        recovery_minutes = []
        for outage in outages:
            recovery = next((r for r in recoveries if r.timestamp > outage.timestamp), None)
            if recovery is not None:
                recovery_minutes.append(minutes_between(outage.timestamp, recovery.timestamp))

        observed_minutes = (
            minutes_between(device_events[0].timestamp, now) if device_events else 0.0
        )
        if observed_minutes > 0:
            downtime = sum(recovery_minutes)
            reliability = round_half_up(
                clamp((observed_minutes - downtime) / observed_minutes * 100, 0, 100)
            )
        else:
            reliability = 100

        return DeviceRecoveryStatus(
            device_id=device_id,
            current_status=state,
            last_seen=last_event.timestamp if last_event else now,
            outage_count=len(outages),
            average_recovery_minutes=(
                round_half_up(mean(recovery_minutes)) if recovery_minutes else 0
            ),
            reliability_pct=reliability,
            last_outage=outages[-1].timestamp if outages else None,
        )

    def get_device_recovery_statuses(
        self, events: Sequence[NetworkEvent], now: Optional[datetime] = None
    ) -> List[DeviceRecoveryStatus]:
        """Recovery status for every device with at least one network event"""
        now = resolve_now(now)
        device_ids = list(dict.fromkeys(e.device_id for e in events))
        return [self.get_device_recovery_status(d, events, now) for d in device_ids]
