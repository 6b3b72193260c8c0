"""
Telemetry Data Models
=====================

Canonical event shapes produced at ingestion, plus the per-device view
models returned by the analytics services (health, performance, anomalies,
predictive alerts, server health, geographic snapshot, trends).

All datetimes are timezone-aware UTC.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from timezone_utils import ensure_utc


def isoformat_or_none(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# ══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ══════════════════════════════════════════════════════════════════════════════


class ExceptionSeverity(str, Enum):
    """Severity reported by the tracker itself"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Severity(str, Enum):
    """Analytics severity levels"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AnomalyType(str, Enum):
    VOLTAGE_DROP = "voltage_drop"
    FREQUENT_RESTARTS = "frequent_restarts"
    CONNECTION_LOSS = "connection_loss"
    BATTERY_DEGRADATION = "battery_degradation"


class PredictiveAlertType(str, Enum):
    BATTERY_FAILURE = "battery_failure"
    DEVICE_FAILURE = "device_failure"
    CONNECTION_DEGRADATION = "connection_degradation"


class ServerStatus(str, Enum):
    ONLINE = "online"
    DEGRADED = "degraded"
    OFFLINE = "offline"


class MapStatus(str, Enum):
    """Marker status on the fleet map"""
    ONLINE = "online"
    WARNING = "warning"
    CRITICAL = "critical"
    OFFLINE = "offline"


# ══════════════════════════════════════════════════════════════════════════════
# INPUT EVENTS
# ══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Location:
    lat: float
    lon: float

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lon": self.lon}


@dataclass(frozen=True)
class IgnitionEvent:
    """Ignition state change reported by a tracker. Never mutated."""
    id: str
    device_id: str
    timestamp: datetime
    ignition_on: bool
    voltage: Optional[float] = None
    location: Optional[Location] = None
    address: Optional[str] = None
    message: Optional[str] = None
    log_type: Optional[str] = None

    def __post_init__(self):
        # Naive timestamps are UTC
        object.__setattr__(self, "timestamp", ensure_utc(self.timestamp))

    @property
    def has_voltage(self) -> bool:
        return bool(self.voltage)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "device_id": self.device_id,
            "timestamp": isoformat_or_none(self.timestamp),
            "ignition_on": self.ignition_on,
            "voltage": self.voltage,
            "location": self.location.to_dict() if self.location else None,
            "address": self.address,
            "message": self.message,
            "log_type": self.log_type,
        }


@dataclass(frozen=True)
class ExceptionEvent:
    """Error/fault record reported by or about a tracker. Never mutated."""
    id: str
    device_id: str
    timestamp: datetime
    category: str  # free-text "main" code, e.g. "Server Down"
    detail: str = ""
    severity: ExceptionSeverity = ExceptionSeverity.MEDIUM

    def __post_init__(self):
        object.__setattr__(self, "timestamp", ensure_utc(self.timestamp))

    @property
    def text_fields(self) -> Tuple[str, ...]:
        """Category and detail, matched separately so keywords never span both"""
        return (self.category, self.detail)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "device_id": self.device_id,
            "timestamp": isoformat_or_none(self.timestamp),
            "category": self.category,
            "detail": self.detail,
            "severity": self.severity.value,
        }


# ══════════════════════════════════════════════════════════════════════════════
# DERIVED VIEW MODELS
# ══════════════════════════════════════════════════════════════════════════════


@dataclass
class HealthFactors:
    connectivity: int
    battery_health: int
    error_rate: int
    uptime: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "connectivity": self.connectivity,
            "battery_health": self.battery_health,
            "error_rate": self.error_rate,
            "uptime": self.uptime,
        }


@dataclass
class DeviceHealthScore:
    """Composite 0-100 health score. Derived, never persisted."""
    device_id: str
    score: int
    factors: HealthFactors
    computed_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "device_id": self.device_id,
            "score": self.score,
            "factors": self.factors.to_dict(),
            "computed_at": isoformat_or_none(self.computed_at),
        }


@dataclass
class DevicePerformanceMetrics:
    device_id: str
    uptime_pct: float
    mtbf_hours: float
    total_exceptions: int
    critical_exceptions: int
    last_seen: datetime
    average_voltage: float
    location_accuracy: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "device_id": self.device_id,
            "uptime_pct": self.uptime_pct,
            "mtbf_hours": self.mtbf_hours,
            "total_exceptions": self.total_exceptions,
            "critical_exceptions": self.critical_exceptions,
            "last_seen": isoformat_or_none(self.last_seen),
            "average_voltage": self.average_voltage,
            "location_accuracy": self.location_accuracy,
        }


@dataclass
class Anomaly:
    """
    Threshold violation found in one analysis pass.
    `id` is only unique within the pass that produced it.
    """
    id: str
    device_id: str
    kind: AnomalyType
    severity: Severity
    description: str
    detected_at: datetime
    observed_value: float
    threshold: float
    recommendation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "device_id": self.device_id,
            "kind": self.kind.value,
            "severity": self.severity.value,
            "description": self.description,
            "detected_at": isoformat_or_none(self.detected_at),
            "observed_value": round(self.observed_value, 3),
            "threshold": self.threshold,
            "recommendation": self.recommendation,
        }


@dataclass
class PredictiveAlert:
    """Projected failure. Same transient-identity caveat as Anomaly."""
    id: str
    device_id: str
    kind: PredictiveAlertType
    probability: int  # 0-100
    eta_hours: float
    description: str
    recommendation: str
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "device_id": self.device_id,
            "kind": self.kind.value,
            "probability": self.probability,
            "eta_hours": round(self.eta_hours, 2),
            "description": self.description,
            "recommendation": self.recommendation,
            "created_at": isoformat_or_none(self.created_at),
        }


@dataclass
class ServerHealthSnapshot:
    status: ServerStatus
    uptime_pct: float
    response_time_ms: int
    connected_devices: int
    total_devices: int
    last_downtime: Optional[datetime]
    downtime_minutes_today: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "uptime_pct": self.uptime_pct,
            "response_time_ms": self.response_time_ms,
            "connected_devices": self.connected_devices,
            "total_devices": self.total_devices,
            "last_downtime": isoformat_or_none(self.last_downtime),
            "downtime_minutes_today": self.downtime_minutes_today,
        }


@dataclass
class GeographicData:
    """Latest known position of a device"""
    device_id: str
    latitude: float
    longitude: float
    location: str
    status: MapStatus
    last_seen: datetime
    health_score: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "device_id": self.device_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "location": self.location,
            "status": self.status.value,
            "last_seen": isoformat_or_none(self.last_seen),
            "health_score": self.health_score,
        }


@dataclass
class TrendPoint:
    """Daily activity bucket"""
    date: str  # "Jul 23"
    exceptions: int = 0
    ignitions: int = 0
    critical_issues: int = 0
    server_downtime: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "exceptions": self.exceptions,
            "ignitions": self.ignitions,
            "critical_issues": self.critical_issues,
            "server_downtime": self.server_downtime,
        }
