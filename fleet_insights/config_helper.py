"""
Configuration helper - composition root for the analytics engine

Turns a Settings instance into wired repository, services and orchestrator.
Nothing here is cached at module level; each call builds a fresh container,
and that container owns the one NotificationDispatcher used by its callers.

Usage:
    from fleet_insights.config_helper import setup_architecture

    repository, services, orchestrator = setup_architecture()
    repository.ingest(ignition_records, exception_records)
    snapshot = orchestrator.build_dashboard(
        repository.get_ignition_events(), repository.get_exception_events()
    )
    orchestrator.dispatch_alerts(snapshot, services["notifications"])
"""

import logging
from typing import Any, Dict, Optional, Tuple

from logger_config import configure_structlog, setup_logging
from settings import Settings, get_settings


def setup_observability(settings: Optional[Settings] = None) -> logging.Logger:
    """Configure stdlib handlers and route structlog through them."""
    settings = settings or get_settings()
    level = getattr(logging, settings.app.log_level.upper(), logging.INFO)
    app_logger = setup_logging(
        "fleet_insights",
        level=logging.DEBUG if settings.app.debug else level,
        logs_dir=settings.app.logs_dir,
    )
    configure_structlog()
    for warning in settings.validate():
        app_logger.warning(warning)
    return app_logger


def create_repository(settings: Optional[Settings] = None):
    """
    Create the in-memory event repository.

    Args:
        settings: Optional Settings. If None, uses get_settings()
    """
    from fleet_insights.repositories import EventRepository, LogNormalizer

    settings = settings or get_settings()
    return EventRepository(
        normalizer=LogNormalizer(),
        max_events_per_device=settings.app.retained_events_per_device,
    )


def create_services(settings: Optional[Settings] = None) -> Dict[str, Any]:
    """
    Create all service instances configured from settings.

    Returns:
        Dict with service instances:
        {
            'health': DeviceHealthScorer,
            'performance': PerformanceMetricsCalculator,
            'anomaly': AnomalyDetector,
            'predictive': PredictiveAlertGenerator,
            'server_health': ServerHealthAggregator,
            'geographic': GeographicSnapshotBuilder,
            'trends': TrendAnalyzer,
            'network': NetworkIncidentEngine,
            'operations': OperationsSummaryBuilder,
            'notifications': NotificationDispatcher,
        }
    """
    from fleet_insights.services import (
        AnomalyDetector,
        DeviceHealthScorer,
        GeographicSnapshotBuilder,
        NetworkIncidentEngine,
        NotificationDispatcher,
        OperationsSummaryBuilder,
        PerformanceMetricsCalculator,
        PredictiveAlertGenerator,
        ServerHealthAggregator,
        TrendAnalyzer,
    )

    settings = settings or get_settings()
    health_cfg = settings.health
    anomaly_cfg = settings.anomaly
    prediction_cfg = settings.prediction
    incident_cfg = settings.incidents
    notification_cfg = settings.notifications

    health = DeviceHealthScorer(
        nominal_voltage=health_cfg.nominal_voltage,
        full_charge_voltage=health_cfg.full_charge_voltage,
        voltage_sample_size=health_cfg.voltage_sample_size,
        weights={
            "connectivity": health_cfg.connectivity_weight,
            "battery_health": health_cfg.battery_weight,
            "error_rate": health_cfg.error_rate_weight,
            "uptime": health_cfg.uptime_weight,
        },
    )

    return {
        "health": health,
        "performance": PerformanceMetricsCalculator(),
        "anomaly": AnomalyDetector(
            voltage_window=anomaly_cfg.voltage_window,
            min_voltage_readings=anomaly_cfg.min_voltage_readings,
            voltage_drop_threshold=anomaly_cfg.voltage_drop_threshold,
            voltage_critical_threshold=anomaly_cfg.voltage_critical_threshold,
            restart_threshold_per_hour=anomaly_cfg.restart_threshold_per_hour,
        ),
        "predictive": PredictiveAlertGenerator(
            voltage_sample_size=prediction_cfg.voltage_sample_size,
            min_voltage_samples=prediction_cfg.min_voltage_samples,
            slope_threshold=prediction_cfg.slope_threshold,
            failure_voltage=prediction_cfg.failure_voltage,
            horizon_hours=prediction_cfg.horizon_hours,
            min_probability=prediction_cfg.min_probability,
            max_probability=prediction_cfg.max_probability,
            connection_window_days=prediction_cfg.connection_window_days,
            connection_issue_threshold=prediction_cfg.connection_issue_threshold,
            connection_eta_hours=prediction_cfg.connection_eta_hours,
            connection_max_probability=prediction_cfg.connection_max_probability,
        ),
        "server_health": ServerHealthAggregator(),
        "geographic": GeographicSnapshotBuilder(health_scorer=health),
        "trends": TrendAnalyzer(),
        "network": NetworkIncidentEngine(
            incident_window_minutes=incident_cfg.incident_window_minutes,
            total_device_count=incident_cfg.total_device_count,
            status_window_minutes=incident_cfg.status_window_minutes,
            outage_device_threshold=incident_cfg.outage_device_threshold,
        ),
        "operations": OperationsSummaryBuilder(
            online_within_hours=notification_cfg.offline_alert_hours
        ),
        "notifications": NotificationDispatcher(
            max_notifications=notification_cfg.max_notifications,
            enabled=notification_cfg.enabled,
            sound_enabled=notification_cfg.sound_enabled,
        ),
    }


def create_orchestrator(services: Dict[str, Any], settings: Optional[Settings] = None):
    """
    Create FleetAnalyticsOrchestrator with all dependencies.

    Args:
        services: Dict from create_services()
        settings: Optional Settings for alert thresholds
    """
    from fleet_insights.orchestrators import FleetAnalyticsOrchestrator, OrchestratorConfig

    settings = settings or get_settings()
    config = OrchestratorConfig(
        offline_alert_hours=settings.notifications.offline_alert_hours,
        battery_alert_voltage=settings.notifications.battery_alert_voltage,
    )

    return FleetAnalyticsOrchestrator(
        health_scorer=services["health"],
        performance_calculator=services["performance"],
        anomaly_detector=services["anomaly"],
        predictive_generator=services["predictive"],
        server_health=services["server_health"],
        geographic_builder=services["geographic"],
        trend_analyzer=services["trends"],
        incident_engine=services["network"],
        operations_builder=services["operations"],
        config=config,
    )


# Quick setup function for convenience
def setup_architecture(
    settings: Optional[Settings] = None, init_logging: bool = False
) -> Tuple[Any, Dict[str, Any], Any]:
    """
    One-liner to set up the entire engine.

    Returns:
        Tuple of (repository, services, orchestrator)
    """
    settings = settings or get_settings()
    if init_logging:
        setup_observability(settings)

    repository = create_repository(settings)
    services = create_services(settings)
    orchestrator = create_orchestrator(services, settings)

    return repository, services, orchestrator
