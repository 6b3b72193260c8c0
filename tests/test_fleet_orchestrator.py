"""
Tests for FleetAnalyticsOrchestrator - full dashboard pass and alert rules
"""

import json
from datetime import timedelta

import pytest

from fleet_insights.models.network_models import NetworkHealth
from fleet_insights.models.notification_models import NotificationKind
from fleet_insights.models.telemetry_models import (
    AnomalyType,
    ExceptionEvent,
    IgnitionEvent,
    Location,
    ServerStatus,
)
from fleet_insights.orchestrators import FleetAnalyticsOrchestrator, OrchestratorConfig
from fleet_insights.services.network_incident_engine import NetworkIncidentEngine
from fleet_insights.services.notification_dispatcher import NotificationDispatcher


@pytest.fixture
def orchestrator():
    return FleetAnalyticsOrchestrator(incident_engine=NetworkIncidentEngine(total_device_count=10))


@pytest.fixture
def declining_battery(make_ignition):
    voltages = [12.0, 11.8, 11.6, 11.4, 11.2]
    return [
        make_ignition("TRK_DECLINE", minutes_ago=300 - 60 * i, voltage=v)
        for i, v in enumerate(voltages)
    ]


class TestBuildDashboard:
    def test_dashboard_covers_every_device(self, orchestrator, now, sample_fleet):
        ignitions, exceptions = sample_fleet
        snapshot = orchestrator.build_dashboard(ignitions, exceptions, now=now)

        devices = ["TRK_OK", "TRK_LOW", "TRK_STALE"]
        assert snapshot.generated_at == now
        assert [h.device_id for h in snapshot.health_scores] == devices
        assert [m.device_id for m in snapshot.performance_metrics] == devices
        assert [g.device_id for g in snapshot.geographic_data] == ["TRK_OK", "TRK_LOW"]
        assert len(snapshot.trend_data) == 7
        assert snapshot.server_health.status == ServerStatus.ONLINE
        assert snapshot.log_summary.devices_affected == 3
        assert len(snapshot.device_statuses) == 3

    def test_low_battery_device_flagged(self, orchestrator, now, sample_fleet):
        ignitions, exceptions = sample_fleet
        snapshot = orchestrator.build_dashboard(ignitions, exceptions, now=now)

        assert [(a.device_id, a.kind) for a in snapshot.anomalies] == [
            ("TRK_LOW", AnomalyType.VOLTAGE_DROP)
        ]

    def test_network_sections(self, orchestrator, now, fleet_outage_exceptions):
        snapshot = orchestrator.build_dashboard([], fleet_outage_exceptions, now=now)

        assert len(snapshot.network.incidents) == 1
        assert snapshot.network_status.status == NetworkHealth.HEALTHY
        assert snapshot.network_status.last_incident is snapshot.network.incidents[0]
        assert len(snapshot.recovery_statuses) == 6
        assert snapshot.server_health.status == ServerStatus.OFFLINE

    def test_dashboard_is_json_serializable(self, orchestrator, now, sample_fleet):
        ignitions, exceptions = sample_fleet
        data = orchestrator.build_dashboard(ignitions, exceptions, now=now).to_dict()
        decoded = json.loads(json.dumps(data))
        assert decoded["generated_at"] == now.isoformat()
        assert len(decoded["health_scores"]) == 3

    def test_empty_input(self, orchestrator, now):
        snapshot = orchestrator.build_dashboard([], [], now=now)
        assert snapshot.health_scores == []
        assert snapshot.network.incidents == []
        assert snapshot.server_health.status == ServerStatus.ONLINE


class TestPassthroughs:
    def test_trend_days_override(self, orchestrator, now):
        assert len(orchestrator.get_trend_data([], [], now=now, days=3)) == 3
        assert len(orchestrator.get_trend_data([], [], now=now)) == 7

    def test_network_status(self, orchestrator, now, make_exception):
        exceptions = [make_exception(f"D{i}", minutes_ago=5, category="Server Down") for i in range(5)]
        status = orchestrator.get_network_status([], exceptions, now=now)
        assert status.status == NetworkHealth.OUTAGE
        assert status.affected_count == 5

    def test_device_recovery_statuses(self, orchestrator, now, fleet_outage_exceptions):
        statuses = orchestrator.get_device_recovery_statuses([], fleet_outage_exceptions, now=now)
        assert len(statuses) == 6

    def test_server_health_uses_exceptions(self, orchestrator, now, make_exception):
        health = orchestrator.get_server_health(
            [], [make_exception(minutes_ago=5, category="Server Down")], now=now
        )
        assert health.status == ServerStatus.OFFLINE


class TestDispatchAlerts:
    def test_alert_rules_on_sample_fleet(self, orchestrator, now, sample_fleet, dispatcher):
        ignitions, exceptions = sample_fleet
        snapshot = orchestrator.build_dashboard(ignitions, exceptions, now=now)

        created = orchestrator.dispatch_alerts(snapshot, dispatcher, now=now)
        assert [(n.title, n.device_id) for n in created] == [
            ("Device Offline", "TRK_STALE"),
            ("Low Battery Alert", "TRK_LOW"),
            ("Anomaly Detected", "TRK_LOW"),
        ]
        assert len(dispatcher.get_all()) == 3

    def test_server_down_alert(self, orchestrator, now, fleet_outage_exceptions, dispatcher):
        snapshot = orchestrator.build_dashboard([], fleet_outage_exceptions, now=now)
        created = orchestrator.dispatch_alerts(snapshot, dispatcher, now=now)

        assert len(created) == 1
        assert created[0].kind == NotificationKind.CRITICAL
        assert "affecting 6 devices" in created[0].message
        assert dispatcher.get_critical_count() == 1

    def test_predictive_alerts_dispatched(self, orchestrator, now, declining_battery, dispatcher):
        snapshot = orchestrator.build_dashboard(declining_battery, [], now=now)
        created = orchestrator.dispatch_alerts(snapshot, dispatcher, now=now)

        assert [n.title for n in created] == ["Predictive Alert"]
        assert created[0].kind == NotificationKind.INFO

    def test_predictive_alerts_can_be_disabled(self, now, declining_battery, dispatcher):
        orchestrator = FleetAnalyticsOrchestrator(
            config=OrchestratorConfig(alert_on_predictions=False)
        )
        snapshot = orchestrator.build_dashboard(declining_battery, [], now=now)
        assert orchestrator.dispatch_alerts(snapshot, dispatcher, now=now) == []

    def test_rules_re_evaluated_each_call(self, orchestrator, now, sample_fleet, dispatcher):
        ignitions, exceptions = sample_fleet
        snapshot = orchestrator.build_dashboard(ignitions, exceptions, now=now)
        orchestrator.dispatch_alerts(snapshot, dispatcher, now=now)
        orchestrator.dispatch_alerts(snapshot, dispatcher, now=now)
        assert len(dispatcher.get_all()) == 6

    def test_disabled_dispatcher(self, orchestrator, now, sample_fleet):
        ignitions, exceptions = sample_fleet
        snapshot = orchestrator.build_dashboard(ignitions, exceptions, now=now)
        dispatcher = NotificationDispatcher(enabled=False)
        assert orchestrator.dispatch_alerts(snapshot, dispatcher, now=now) == []


class TestNaiveTimestamps:
    """Events built with naive datetimes are read as UTC"""

    def test_naive_event_timestamps_become_utc(self, now):
        naive = now.replace(tzinfo=None) - timedelta(minutes=10)
        ignition = IgnitionEvent(id="i1", device_id="D1", timestamp=naive, ignition_on=True)
        exception = ExceptionEvent(id="e1", device_id="D1", timestamp=naive, category="Server Down")

        assert ignition.timestamp == now - timedelta(minutes=10)
        assert ignition.timestamp.tzinfo is not None
        assert exception.timestamp == now - timedelta(minutes=10)

    def test_dashboard_accepts_naive_events(self, orchestrator, now):
        naive_now = now.replace(tzinfo=None)
        ignitions = [
            IgnitionEvent(
                id=f"i{i}",
                device_id="D1",
                timestamp=naive_now - timedelta(minutes=10 * i),
                ignition_on=True,
                voltage=12.5,
                location=Location(lat=19.43, lon=-99.13),
            )
            for i in range(1, 4)
        ]
        exceptions = [
            ExceptionEvent(
                id="e1",
                device_id="D1",
                timestamp=naive_now - timedelta(minutes=5),
                category="Server Down",
            )
        ]

        snapshot = orchestrator.build_dashboard(ignitions, exceptions, now=now)
        assert [h.device_id for h in snapshot.health_scores] == ["D1"]
        assert len(snapshot.network.incidents) == 1
        assert snapshot.server_health.status == ServerStatus.OFFLINE
