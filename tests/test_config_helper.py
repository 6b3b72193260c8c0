"""
Tests for settings, logging configuration and the composition root
"""

import logging

import pytest

import logger_config
from fleet_insights import config_helper
from fleet_insights.config_helper import (
    create_orchestrator,
    create_repository,
    create_services,
    setup_architecture,
    setup_observability,
)
from fleet_insights.orchestrators import FleetAnalyticsOrchestrator
from fleet_insights.repositories import EventRepository
from fleet_insights.services import NotificationDispatcher
from logger_config import ColoredFormatter, setup_logging
from settings import Settings, get_settings


@pytest.fixture
def close_handlers():
    """Close file handlers opened by a test"""
    names = []
    yield names
    for name in names:
        target = logging.getLogger(name)
        for handler in target.handlers:
            handler.close()
        target.handlers = []


class TestSettings:
    def test_defaults(self, clean_env):
        settings = get_settings()

        assert settings.health.full_charge_voltage == 12.6
        assert settings.health.weights_valid
        assert settings.anomaly.voltage_drop_threshold == 11.5
        assert settings.prediction.failure_voltage == 10.5
        assert settings.incidents.total_device_count == 10
        assert settings.incidents.incident_window_minutes == 5.0
        assert settings.notifications.max_notifications == 100
        assert settings.notifications.enabled is True
        assert settings.app.retained_events_per_device == 100
        assert settings.validate() == []

    def test_environment_overrides(self, clean_env):
        clean_env.setenv("FLEET_TOTAL_DEVICES", "25")
        clean_env.setenv("NOTIFICATIONS_MAX", "10")
        clean_env.setenv("NOTIFICATIONS_ENABLED", "no")

        settings = get_settings()
        assert settings.incidents.total_device_count == 25
        assert settings.notifications.max_notifications == 10
        assert settings.notifications.enabled is False

    def test_validate_reports_problems(self, clean_env):
        clean_env.setenv("FLEET_TOTAL_DEVICES", "0")
        clean_env.setenv("NOTIFICATIONS_ENABLED", "false")

        warnings = get_settings().validate()
        assert any("FLEET_TOTAL_DEVICES" in w for w in warnings)
        assert any("Notifications disabled" in w for w in warnings)

    def test_to_dict(self, clean_env):
        data = Settings().to_dict()
        assert data["total_device_count"] == 10
        assert data["notifications_enabled"] is True


class TestCompositionRoot:
    def test_setup_architecture_wires_everything(self, clean_env):
        repository, services, orchestrator = setup_architecture(get_settings())

        assert isinstance(repository, EventRepository)
        assert isinstance(orchestrator, FleetAnalyticsOrchestrator)
        assert set(services) == {
            "health",
            "performance",
            "anomaly",
            "predictive",
            "server_health",
            "geographic",
            "trends",
            "network",
            "operations",
            "notifications",
        }
        assert orchestrator.incident_engine is services["network"]
        assert orchestrator.geographic_builder.health_scorer is services["health"]

    def test_each_container_owns_its_dispatcher(self, clean_env):
        first = create_services(get_settings())
        second = create_services(get_settings())
        assert isinstance(first["notifications"], NotificationDispatcher)
        assert first["notifications"] is not second["notifications"]

    def test_settings_flow_into_services(self, clean_env):
        clean_env.setenv("FLEET_TOTAL_DEVICES", "25")
        clean_env.setenv("NOTIFICATIONS_MAX", "5")
        clean_env.setenv("RETAINED_EVENTS_PER_DEVICE", "7")
        settings = get_settings()

        services = create_services(settings)
        assert services["network"].total_device_count == 25
        assert services["notifications"].max_notifications == 5
        assert create_repository(settings).max_events_per_device == 7

    def test_orchestrator_alert_thresholds_from_settings(self, clean_env):
        clean_env.setenv("ALERT_BATTERY_VOLTAGE", "11.8")
        settings = get_settings()
        orchestrator = create_orchestrator(create_services(settings), settings)
        assert orchestrator.config.battery_alert_voltage == 11.8

    def test_end_to_end_ingest_and_dashboard(self, clean_env, now):
        repository, services, orchestrator = setup_architecture(get_settings())
        repository.ingest(
            [
                {
                    "id": "i1",
                    "deviceImei": "864001",
                    "timestamp": "23/07/2025 19:50:00",
                    "ignitionStatus": "on",
                    "voltage": 12.5,
                    "location": {"latitude": 19.43, "longitude": -99.13},
                }
            ],
            [
                {
                    "id": "e1",
                    "imei": "864001",
                    "createdAt": "2025-07-23T19:55:00Z",
                    "main": "Server Down",
                    "details": "Server unavailable",
                }
            ],
        )
        snapshot = orchestrator.build_dashboard(
            repository.get_ignition_events(), repository.get_exception_events(), now=now
        )
        created = orchestrator.dispatch_alerts(snapshot, services["notifications"], now=now)

        assert [h.device_id for h in snapshot.health_scores] == ["864001"]
        assert snapshot.network.incidents[0].affected_devices == {"864001"}
        assert [n.title for n in created] == ["Server Down Alert"]

    def test_setup_observability(self, clean_env, tmp_path, monkeypatch, close_handlers):
        configured = []
        monkeypatch.setattr(config_helper, "configure_structlog", lambda: configured.append(True))
        clean_env.setenv("LOGS_DIR", str(tmp_path))
        clean_env.setenv("FLEET_TOTAL_DEVICES", "0")
        close_handlers.append("fleet_insights")

        app_logger = setup_observability(get_settings())

        assert configured == [True]
        assert app_logger.name == "fleet_insights"
        assert (tmp_path / "fleet_insights.log").exists()


class TestLoggerConfig:
    def test_setup_logging_console_only(self):
        app_logger = setup_logging("fleet_test_console", log_to_file=False)
        assert len(app_logger.handlers) == 1

    def test_setup_logging_with_files(self, tmp_path, close_handlers):
        close_handlers.append("fleet_test_files")
        app_logger = setup_logging("fleet_test_files", logs_dir=tmp_path)

        assert len(app_logger.handlers) == 3
        assert (tmp_path / "fleet_test_files.log").exists()
        assert (tmp_path / "fleet_test_files_errors.log").exists()

    def test_setup_logging_replaces_handlers(self):
        setup_logging("fleet_test_repeat", log_to_file=False)
        app_logger = setup_logging("fleet_test_repeat", log_to_file=False)
        assert len(app_logger.handlers) == 1

    def test_colored_formatter_restores_level_name(self):
        formatter = ColoredFormatter(fmt="[%(levelname)s] %(message)s")
        record = logging.LogRecord("x", logging.WARNING, __file__, 1, "careful", None, None)

        output = formatter.format(record)
        assert "\033[33mWARNING\033[0m" in output
        assert record.levelname == "WARNING"

    def test_configure_structlog_routes_through_stdlib(self, monkeypatch):
        captured = {}
        monkeypatch.setattr(
            logger_config.structlog, "configure", lambda **kwargs: captured.update(kwargs)
        )
        logger_config.configure_structlog()

        assert captured["logger_factory"].__class__.__name__ == "LoggerFactory"
        assert captured["wrapper_class"] is logger_config.structlog.stdlib.BoundLogger
