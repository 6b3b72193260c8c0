"""Analytics services."""

from .anomaly_detector import AnomalyDetector
from .geographic_snapshot import GeographicSnapshotBuilder
from .health_scorer import DeviceHealthScorer
from .network_incident_engine import NetworkIncidentEngine
from .notification_dispatcher import NotificationDispatcher
from .operations_summary import OperationsSummaryBuilder
from .performance_metrics import PerformanceMetricsCalculator
from .predictive_alerts import PredictiveAlertGenerator
from .server_health import ServerHealthAggregator
from .trend_analyzer import TrendAnalyzer

__all__ = [
    "AnomalyDetector",
    "DeviceHealthScorer",
    "GeographicSnapshotBuilder",
    "NetworkIncidentEngine",
    "NotificationDispatcher",
    "OperationsSummaryBuilder",
    "PerformanceMetricsCalculator",
    "PredictiveAlertGenerator",
    "ServerHealthAggregator",
    "TrendAnalyzer",
]
