"""Dataclass models for telemetry, analytics, incidents and notifications."""

from .network_models import (
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
from .notification_models import AlertNotification, NotificationDraft, NotificationKind
from .operations_models import (
    DeviceOperationalStatus,
    DeviceStatus,
    InsightType,
    LogSummary,
    OperationalInsight,
    SeverityLevel,
    SeverityLevelName,
    TimeFilter,
)
from .telemetry_models import (
    Anomaly,
    AnomalyType,
    DeviceHealthScore,
    DevicePerformanceMetrics,
    ExceptionEvent,
    ExceptionSeverity,
    GeographicData,
    HealthFactors,
    IgnitionEvent,
    Location,
    MapStatus,
    PredictiveAlert,
    PredictiveAlertType,
    ServerHealthSnapshot,
    ServerStatus,
    Severity,
    TrendPoint,
)

__all__ = [
    "AlertNotification",
    "Anomaly",
    "AnomalyType",
    "DeviceConnectionState",
    "DeviceHealthScore",
    "DeviceOperationalStatus",
    "DevicePerformanceMetrics",
    "DeviceRecoveryStatus",
    "DeviceStatus",
    "ExceptionEvent",
    "ExceptionSeverity",
    "FrequentlyAffectedDevice",
    "GeographicData",
    "HealthFactors",
    "IgnitionEvent",
    "IncidentSeverity",
    "IncidentStatus",
    "InsightType",
    "Location",
    "LogSummary",
    "MapStatus",
    "NetworkAnalysis",
    "NetworkEvent",
    "NetworkEventType",
    "NetworkHealth",
    "NetworkIncident",
    "NetworkStatus",
    "NotificationDraft",
    "NotificationKind",
    "OperationalInsight",
    "PredictiveAlert",
    "PredictiveAlertType",
    "RecoveryMetrics",
    "RecoveryPattern",
    "ServerHealthSnapshot",
    "ServerStatus",
    "Severity",
    "SeverityLevel",
    "SeverityLevelName",
    "TimeFilter",
    "TrendPoint",
]
