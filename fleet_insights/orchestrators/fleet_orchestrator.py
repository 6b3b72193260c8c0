"""
╔═══════════════════════════════════════════════════════════════════════════════╗
║                    FLEET ANALYTICS ORCHESTRATOR v1.0.0                        ║
║                                                                               ║
║  Thin orchestration layer over the analytics services:                       ║
║  ✓ Every service received by constructor injection                           ║
║  ✓ One full analysis pass per snapshot (no incremental state)                ║
║  ✓ Alert rules applied to a finished snapshot, delivered via dispatcher      ║
╚═══════════════════════════════════════════════════════════════════════════════╝

Services:
- DeviceHealthScorer: composite health per device
- PerformanceMetricsCalculator: weekly uptime / MTBF per device
- AnomalyDetector, PredictiveAlertGenerator: threshold and trend alerts
- ServerHealthAggregator, GeographicSnapshotBuilder, TrendAnalyzer
- NetworkIncidentEngine: incident timeline and recovery analytics
- OperationsSummaryBuilder: device status rows, insights, log summary
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from fleet_insights.models.network_models import (
    DeviceRecoveryStatus,
    NetworkAnalysis,
    NetworkStatus,
)
from fleet_insights.models.notification_models import AlertNotification
from fleet_insights.models.operations_models import (
    DeviceStatus,
    LogSummary,
    OperationalInsight,
)
from fleet_insights.models.telemetry_models import (
    Anomaly,
    DeviceHealthScore,
    DevicePerformanceMetrics,
    ExceptionEvent,
    GeographicData,
    IgnitionEvent,
    PredictiveAlert,
    ServerHealthSnapshot,
    ServerStatus,
    Severity,
    TrendPoint,
)
from fleet_insights.services.anomaly_detector import AnomalyDetector
from fleet_insights.services.geographic_snapshot import GeographicSnapshotBuilder
from fleet_insights.services.health_scorer import DeviceHealthScorer
from fleet_insights.services.network_incident_engine import NetworkIncidentEngine
from fleet_insights.services.notification_dispatcher import (
    NotificationDispatcher,
    create_anomaly_alert,
    create_battery_low_alert,
    create_device_offline_alert,
    create_predictive_alert,
    create_server_down_alert,
)
from fleet_insights.services.operations_summary import OperationsSummaryBuilder
from fleet_insights.services.performance_metrics import PerformanceMetricsCalculator
from fleet_insights.services.predictive_alerts import PredictiveAlertGenerator
from fleet_insights.services.server_health import ServerHealthAggregator
from fleet_insights.services.trend_analyzer import TrendAnalyzer
from timezone_utils import resolve_now

logger = logging.getLogger(__name__)


@dataclass
class OrchestratorConfig:
    """Configuration for FleetAnalyticsOrchestrator."""

    offline_alert_hours: float = 2.0
    battery_alert_voltage: float = 11.5
    alert_anomaly_severities: Tuple[Severity, ...] = (Severity.HIGH, Severity.CRITICAL)
    alert_on_predictions: bool = True
    trend_days: int = 7


@dataclass
class DashboardSnapshot:
    """Everything the presentation layer renders for one refresh"""

    generated_at: datetime
    health_scores: List[DeviceHealthScore] = field(default_factory=list)
    performance_metrics: List[DevicePerformanceMetrics] = field(default_factory=list)
    anomalies: List[Anomaly] = field(default_factory=list)
    predictive_alerts: List[PredictiveAlert] = field(default_factory=list)
    server_health: Optional[ServerHealthSnapshot] = None
    geographic_data: List[GeographicData] = field(default_factory=list)
    trend_data: List[TrendPoint] = field(default_factory=list)
    network: NetworkAnalysis = field(default_factory=NetworkAnalysis)
    network_status: Optional[NetworkStatus] = None
    recovery_statuses: List[DeviceRecoveryStatus] = field(default_factory=list)
    device_statuses: List[DeviceStatus] = field(default_factory=list)
    insights: List[OperationalInsight] = field(default_factory=list)
    log_summary: Optional[LogSummary] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated_at": self.generated_at.isoformat(),
            "health_scores": [h.to_dict() for h in self.health_scores],
            "performance_metrics": [m.to_dict() for m in self.performance_metrics],
            "anomalies": [a.to_dict() for a in self.anomalies],
            "predictive_alerts": [p.to_dict() for p in self.predictive_alerts],
            "server_health": self.server_health.to_dict() if self.server_health else None,
            "geographic_data": [g.to_dict() for g in self.geographic_data],
            "trend_data": [t.to_dict() for t in self.trend_data],
            "network": self.network.to_dict(),
            "network_status": self.network_status.to_dict() if self.network_status else None,
            "recovery_statuses": [r.to_dict() for r in self.recovery_statuses],
            "device_statuses": [d.to_dict() for d in self.device_statuses],
            "insights": [i.to_dict() for i in self.insights],
            "log_summary": self.log_summary.to_dict() if self.log_summary else None,
        }


class FleetAnalyticsOrchestrator:
    """
    Runs the analytics services over a pair of event collections.

    All methods are pure functions of (ignitions, exceptions, now) except
    dispatch_alerts(), which writes to the dispatcher it is given.
    """

    VERSION = "1.0.0"

    def __init__(
        self,
        health_scorer: Optional[DeviceHealthScorer] = None,
        performance_calculator: Optional[PerformanceMetricsCalculator] = None,
        anomaly_detector: Optional[AnomalyDetector] = None,
        predictive_generator: Optional[PredictiveAlertGenerator] = None,
        server_health: Optional[ServerHealthAggregator] = None,
        geographic_builder: Optional[GeographicSnapshotBuilder] = None,
        trend_analyzer: Optional[TrendAnalyzer] = None,
        incident_engine: Optional[NetworkIncidentEngine] = None,
        operations_builder: Optional[OperationsSummaryBuilder] = None,
        config: Optional[OrchestratorConfig] = None,
    ):
        self.health_scorer = health_scorer or DeviceHealthScorer()
        self.performance_calculator = performance_calculator or PerformanceMetricsCalculator()
        self.anomaly_detector = anomaly_detector or AnomalyDetector()
        self.predictive_generator = predictive_generator or PredictiveAlertGenerator()
        self.server_health = server_health or ServerHealthAggregator()
        self.geographic_builder = geographic_builder or GeographicSnapshotBuilder(
            self.health_scorer
        )
        self.trend_analyzer = trend_analyzer or TrendAnalyzer()
        self.incident_engine = incident_engine or NetworkIncidentEngine()
        self.operations_builder = operations_builder or OperationsSummaryBuilder()
        self.config = config or OrchestratorConfig()

        logger.info(f"FleetAnalyticsOrchestrator v{self.VERSION} initialized")

    # ═══════════════════════════════════════════════════════════════════════════
    # PASSTHROUGHS
    # ═══════════════════════════════════════════════════════════════════════════

    def get_device_health_scores(
        self,
        ignitions: Sequence[IgnitionEvent],
        exceptions: Sequence[ExceptionEvent],
        now: Optional[datetime] = None,
    ) -> List[DeviceHealthScore]:
        return self.health_scorer.calculate_fleet_scores(ignitions, exceptions, now)

    def get_performance_metrics(
        self,
        ignitions: Sequence[IgnitionEvent],
        exceptions: Sequence[ExceptionEvent],
        now: Optional[datetime] = None,
    ) -> List[DevicePerformanceMetrics]:
        return self.performance_calculator.calculate_fleet(ignitions, exceptions, now)

    def get_anomalies(
        self,
        ignitions: Sequence[IgnitionEvent],
        exceptions: Sequence[ExceptionEvent],
        now: Optional[datetime] = None,
    ) -> List[Anomaly]:
        return self.anomaly_detector.detect(ignitions, exceptions, now)

    def get_predictive_alerts(
        self,
        ignitions: Sequence[IgnitionEvent],
        exceptions: Sequence[ExceptionEvent],
        now: Optional[datetime] = None,
    ) -> List[PredictiveAlert]:
        return self.predictive_generator.generate(ignitions, exceptions, now)

    def get_server_health(
        self,
        ignitions: Sequence[IgnitionEvent],
        exceptions: Sequence[ExceptionEvent],
        now: Optional[datetime] = None,
    ) -> ServerHealthSnapshot:
        return self.server_health.calculate(exceptions, now)

    def get_geographic_data(
        self,
        ignitions: Sequence[IgnitionEvent],
        exceptions: Sequence[ExceptionEvent],
        now: Optional[datetime] = None,
    ) -> List[GeographicData]:
        return self.geographic_builder.build(ignitions, exceptions, now)

    def get_trend_data(
        self,
        ignitions: Sequence[IgnitionEvent],
        exceptions: Sequence[ExceptionEvent],
        now: Optional[datetime] = None,
        days: Optional[int] = None,
    ) -> List[TrendPoint]:
        return self.trend_analyzer.generate_trend_data(
            ignitions, exceptions, days if days is not None else self.config.trend_days, now
        )

    def analyze_network(
        self,
        ignitions: Sequence[IgnitionEvent],
        exceptions: Sequence[ExceptionEvent],
        now: Optional[datetime] = None,
    ) -> NetworkAnalysis:
        return self.incident_engine.analyze(ignitions, exceptions, now)

    def get_network_status(
        self,
        ignitions: Sequence[IgnitionEvent],
        exceptions: Sequence[ExceptionEvent],
        now: Optional[datetime] = None,
    ) -> NetworkStatus:
        analysis = self.incident_engine.analyze(ignitions, exceptions, now)
        return self.incident_engine.get_network_status(analysis.events, analysis.incidents, now)

    def get_device_recovery_statuses(
        self,
        ignitions: Sequence[IgnitionEvent],
        exceptions: Sequence[ExceptionEvent],
        now: Optional[datetime] = None,
    ) -> List[DeviceRecoveryStatus]:
        events = self.incident_engine.extract_network_events(exceptions)
        return self.incident_engine.get_device_recovery_statuses(events, now)

    # ═══════════════════════════════════════════════════════════════════════════
    # FULL PASS
    # ═══════════════════════════════════════════════════════════════════════════

    def build_dashboard(
        self,
        ignitions: Sequence[IgnitionEvent],
        exceptions: Sequence[ExceptionEvent],
        now: Optional[datetime] = None,
    ) -> DashboardSnapshot:
        """Run every service once against the same `now`."""
        now = resolve_now(now)
        network = self.incident_engine.analyze(ignitions, exceptions, now)

        snapshot = DashboardSnapshot(
            generated_at=now,
            health_scores=self.get_device_health_scores(ignitions, exceptions, now),
            performance_metrics=self.get_performance_metrics(ignitions, exceptions, now),
            anomalies=self.get_anomalies(ignitions, exceptions, now),
            predictive_alerts=self.get_predictive_alerts(ignitions, exceptions, now),
            server_health=self.get_server_health(ignitions, exceptions, now),
            geographic_data=self.get_geographic_data(ignitions, exceptions, now),
            trend_data=self.get_trend_data(ignitions, exceptions, now),
            network=network,
            network_status=self.incident_engine.get_network_status(
                network.events, network.incidents, now
            ),
            recovery_statuses=self.incident_engine.get_device_recovery_statuses(
                network.events, now
            ),
            device_statuses=self.operations_builder.build_device_statuses(
                ignitions, exceptions, now
            ),
            insights=self.operations_builder.build_insights(ignitions, exceptions, now),
            log_summary=self.operations_builder.build_log_summary(ignitions, exceptions, now),
        )

        logger.debug(
            f"Dashboard built: {len(snapshot.health_scores)} devices, "
            f"{len(snapshot.anomalies)} anomalies, {len(network.incidents)} incidents"
        )
        return snapshot

    # ═══════════════════════════════════════════════════════════════════════════
    # ALERTING
    # ═══════════════════════════════════════════════════════════════════════════

    def dispatch_alerts(
        self,
        snapshot: DashboardSnapshot,
        dispatcher: NotificationDispatcher,
        now: Optional[datetime] = None,
    ) -> List[AlertNotification]:
        """
        Apply the alert rules to a snapshot.

        Rules are re-evaluated on every call; a persisting condition creates a
        new notification each time.

        Returns:
            Notifications actually stored (empty if the dispatcher is disabled)
        """
        now = resolve_now(now)
        cfg = self.config
        drafts = []

        if snapshot.server_health and snapshot.server_health.status == ServerStatus.OFFLINE:
            drafts.append(create_server_down_alert(snapshot.server_health.total_devices))

        offline_cutoff = now - timedelta(hours=cfg.offline_alert_hours)
        for metric in snapshot.performance_metrics:
            if metric.last_seen < offline_cutoff:
                drafts.append(
                    create_device_offline_alert(metric.device_id, cfg.offline_alert_hours)
                )

        for metric in snapshot.performance_metrics:
            if 0 < metric.average_voltage < cfg.battery_alert_voltage:
                drafts.append(create_battery_low_alert(metric.device_id, metric.average_voltage))

        for anomaly in snapshot.anomalies:
            if anomaly.severity in cfg.alert_anomaly_severities:
                drafts.append(
                    create_anomaly_alert(anomaly.device_id, anomaly.kind.value, anomaly.description)
                )

        if cfg.alert_on_predictions:
            for alert in snapshot.predictive_alerts:
                drafts.append(
                    create_predictive_alert(alert.device_id, alert.kind.value, alert.eta_hours)
                )

        created = [n for n in (dispatcher.add(d, now) for d in drafts) if n is not None]
        if created:
            logger.info(f"Dispatched {len(created)} alerts")
        return created
