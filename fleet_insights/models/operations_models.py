"""
Operations Overview Models

Per-device status rows, severity catalogue entries and operational insights
shown on the operations overview.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from fleet_insights.models.telemetry_models import isoformat_or_none


class SeverityLevelName(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class DeviceOperationalStatus(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    ONLINE = "online"
    OFFLINE = "offline"


class InsightType(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class SeverityLevel:
    level: SeverityLevelName
    description: str
    impact: str

    @property
    def is_serious(self) -> bool:
        return self.level in (SeverityLevelName.CRITICAL, SeverityLevelName.HIGH)

    def to_dict(self) -> Dict[str, str]:
        return {
            "level": self.level.value,
            "description": self.description,
            "impact": self.impact,
        }


@dataclass
class DeviceStatus:
    device_id: str
    last_seen: datetime
    status: DeviceOperationalStatus
    ignition_count: int = 0
    exception_count: int = 0
    critical_exceptions: int = 0
    last_exception: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "device_id": self.device_id,
            "last_seen": isoformat_or_none(self.last_seen),
            "status": self.status.value,
            "ignition_count": self.ignition_count,
            "exception_count": self.exception_count,
            "critical_exceptions": self.critical_exceptions,
            "last_exception": self.last_exception,
        }


@dataclass
class OperationalInsight:
    type: InsightType
    title: str
    description: str
    count: int
    devices: List[str] = field(default_factory=list)
    action: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "title": self.title,
            "description": self.description,
            "count": self.count,
            "devices": list(self.devices),
            "action": self.action,
        }


@dataclass(frozen=True)
class TimeFilter:
    """Look-back preset; hours == 0 means no filtering"""
    label: str
    value: str
    hours: int

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "value": self.value, "hours": self.hours}


@dataclass
class LogSummary:
    total_logs: int
    critical_issues: int
    devices_affected: int
    last_update: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_logs": self.total_logs,
            "critical_issues": self.critical_issues,
            "devices_affected": self.devices_affected,
            "last_update": isoformat_or_none(self.last_update),
        }
