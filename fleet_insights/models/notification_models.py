"""
Notification Models - operator alerts emitted by the dispatcher
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from fleet_insights.models.telemetry_models import isoformat_or_none


class NotificationKind(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class NotificationDraft:
    """Alert content before the dispatcher stamps it with id/timestamp"""
    kind: NotificationKind
    title: str
    message: str
    device_id: Optional[str] = None


@dataclass
class AlertNotification:
    id: str
    kind: NotificationKind
    title: str
    message: str
    timestamp: datetime
    device_id: Optional[str] = None
    acknowledged: bool = False
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "title": self.title,
            "message": self.message,
            "device_id": self.device_id,
            "timestamp": isoformat_or_none(self.timestamp),
            "acknowledged": self.acknowledged,
            "acknowledged_by": self.acknowledged_by,
            "acknowledged_at": isoformat_or_none(self.acknowledged_at),
        }
