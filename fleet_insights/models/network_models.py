"""
Network Incident Models

Derived network events, grouped incidents and the recovery analytics built
on top of them. Incidents are the only mutable objects here and they are
only mutated by the incident engine during a single grouping pass.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from fleet_insights.models.telemetry_models import isoformat_or_none


class NetworkEventType(str, Enum):
    OUTAGE = "outage"
    RECOVERY = "recovery"
    TIMEOUT = "timeout"


class IncidentStatus(str, Enum):
    ONGOING = "ongoing"
    RESOLVED = "resolved"


class IncidentSeverity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"


class RecoveryPattern(str, Enum):
    SIMULTANEOUS = "simultaneous"
    GRADUAL = "gradual"
    PARTIAL = "partial"


class NetworkHealth(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    OUTAGE = "outage"


class DeviceConnectionState(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    RECOVERING = "recovering"


@dataclass
class NetworkEvent:
    """Exception event classified as outage / recovery / timeout"""
    id: str
    device_id: str
    timestamp: datetime
    kind: NetworkEventType
    detail: str
    incident_id: Optional[str] = None  # back-reference set during grouping

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "device_id": self.device_id,
            "timestamp": isoformat_or_none(self.timestamp),
            "kind": self.kind.value,
            "detail": self.detail,
            "incident_id": self.incident_id,
        }


@dataclass
class NetworkIncident:
    """
    Time-bounded group of correlated outages.

    Invariants:
        recovered_devices is a subset of affected_devices
        status == RESOLVED iff end_time is set iff duration_minutes is set
        0 <= impact_pct <= 100
    """
    id: str
    start_time: datetime
    affected_devices: Set[str] = field(default_factory=set)
    recovered_devices: Set[str] = field(default_factory=set)
    status: IncidentStatus = IncidentStatus.ONGOING
    severity: IncidentSeverity = IncidentSeverity.MEDIUM
    impact_pct: int = 0
    recovery_pattern: RecoveryPattern = RecoveryPattern.SIMULTANEOUS
    end_time: Optional[datetime] = None
    duration_minutes: Optional[int] = None

    @property
    def is_resolved(self) -> bool:
        return self.status == IncidentStatus.RESOLVED

    @property
    def recovery_rate(self) -> float:
        if not self.affected_devices:
            return 0.0
        return len(self.recovered_devices) / len(self.affected_devices) * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "start_time": isoformat_or_none(self.start_time),
            "end_time": isoformat_or_none(self.end_time),
            "duration_minutes": self.duration_minutes,
            "status": self.status.value,
            "affected_devices": sorted(self.affected_devices),
            "recovered_devices": sorted(self.recovered_devices),
            "severity": self.severity.value,
            "impact_pct": self.impact_pct,
            "recovery_pattern": self.recovery_pattern.value,
        }


@dataclass
class FrequentlyAffectedDevice:
    device_id: str
    incident_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"device_id": self.device_id, "incident_count": self.incident_count}


@dataclass
class RecoveryMetrics:
    """Fleet-wide recovery statistics over a set of incidents"""
    total_outages: int = 0
    average_outage_minutes: int = 0
    longest_outage_minutes: int = 0
    shortest_outage_minutes: int = 0
    recovery_rate: int = 0
    frequently_affected_devices: List[FrequentlyAffectedDevice] = field(
        default_factory=list
    )
    recovery_patterns: Dict[str, int] = field(
        default_factory=lambda: {p.value: 0 for p in RecoveryPattern}
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_outages": self.total_outages,
            "average_outage_minutes": self.average_outage_minutes,
            "longest_outage_minutes": self.longest_outage_minutes,
            "shortest_outage_minutes": self.shortest_outage_minutes,
            "recovery_rate": self.recovery_rate,
            "frequently_affected_devices": [
                d.to_dict() for d in self.frequently_affected_devices
            ],
            "recovery_patterns": dict(self.recovery_patterns),
        }


@dataclass
class NetworkAnalysis:
    """Result of one full incident-engine pass"""
    incidents: List[NetworkIncident] = field(default_factory=list)
    events: List[NetworkEvent] = field(default_factory=list)
    metrics: RecoveryMetrics = field(default_factory=RecoveryMetrics)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "incidents": [i.to_dict() for i in self.incidents],
            "events": [e.to_dict() for e in self.events],
            "metrics": self.metrics.to_dict(),
        }


@dataclass
class NetworkStatus:
    """Live network condition over the trailing status window"""
    status: NetworkHealth
    affected_devices: List[str] = field(default_factory=list)
    last_incident: Optional[NetworkIncident] = None

    @property
    def affected_count(self) -> int:
        return len(self.affected_devices)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "affected_devices": list(self.affected_devices),
            "last_incident": self.last_incident.to_dict() if self.last_incident else None,
        }


@dataclass
class DeviceRecoveryStatus:
    device_id: str
    current_status: DeviceConnectionState
    last_seen: datetime
    outage_count: int
    average_recovery_minutes: int
    reliability_pct: int
    last_outage: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "device_id": self.device_id,
            "current_status": self.current_status.value,
            "last_seen": isoformat_or_none(self.last_seen),
            "outage_count": self.outage_count,
            "average_recovery_minutes": self.average_recovery_minutes,
            "reliability_pct": self.reliability_pct,
            "last_outage": isoformat_or_none(self.last_outage),
        }
