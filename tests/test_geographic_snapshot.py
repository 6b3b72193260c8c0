"""
Tests for GeographicSnapshotBuilder
"""

import pytest

from fleet_insights.models.telemetry_models import MapStatus
from fleet_insights.services.geographic_snapshot import GeographicSnapshotBuilder
from fleet_insights.services.health_scorer import DeviceHealthScorer


@pytest.fixture
def builder():
    return GeographicSnapshotBuilder()


class TestGeographicSnapshot:
    def test_unlocated_devices_excluded(self, builder, now, make_ignition):
        markers = builder.build([make_ignition("NO_FIX", location=None)], [], now=now)
        assert markers == []

    def test_latest_located_position_kept(self, builder, now, make_ignition):
        ignitions = [
            make_ignition(minutes_ago=30, location=(19.0, -99.0), address="Old"),
            make_ignition(minutes_ago=10, location=(20.0, -100.0), address="New"),
            make_ignition(minutes_ago=20, location=(21.0, -101.0), address="Middle"),
            make_ignition(minutes_ago=5, location=None),
        ]
        markers = builder.build(ignitions, [], now=now)

        assert len(markers) == 1
        marker = markers[0]
        assert (marker.latitude, marker.longitude) == (20.0, -100.0)
        assert marker.location == "New"
        assert marker.last_seen == ignitions[1].timestamp

    def test_missing_address_placeholder(self, builder, now, make_ignition):
        markers = builder.build([make_ignition(location=(19.0, -99.0))], [], now=now)
        assert markers[0].location == "Unknown Location"

    def test_health_score_attached(self, builder, now, make_ignition):
        ignitions = [make_ignition(minutes_ago=m, voltage=12.6, location=(19.0, -99.0)) for m in (10, 20, 30)]
        markers = builder.build(ignitions, [], now=now)
        expected = DeviceHealthScorer().calculate_score("DEV001", ignitions, [], now=now)
        assert markers[0].health_score == expected.score


class TestMapStatus:
    def test_recent_server_down_is_critical(self, builder, now, make_ignition, make_exception):
        markers = builder.build(
            [make_ignition(location=(19.0, -99.0))],
            [make_exception(minutes_ago=10, category="Server Down")],
            now=now,
        )
        assert markers[0].status == MapStatus.CRITICAL

    def test_several_recent_exceptions_is_warning(
        self, builder, now, make_ignition, make_exception
    ):
        exceptions = [make_exception(minutes_ago=m, category="GPS Signal Lost") for m in (5, 10, 15)]
        markers = builder.build([make_ignition(location=(19.0, -99.0))], exceptions, now=now)
        assert markers[0].status == MapStatus.WARNING

    def test_stale_position_is_offline(self, builder, now, make_ignition):
        markers = builder.build([make_ignition(minutes_ago=180, location=(19.0, -99.0))], [], now=now)
        assert markers[0].status == MapStatus.OFFLINE

    def test_recent_position_is_online(self, builder, now, make_ignition):
        markers = builder.build([make_ignition(minutes_ago=15, location=(19.0, -99.0))], [], now=now)
        assert markers[0].status == MapStatus.ONLINE

    def test_old_exceptions_do_not_affect_status(
        self, builder, now, make_ignition, make_exception
    ):
        exceptions = [make_exception(minutes_ago=90, category="Server Down")]
        markers = builder.build([make_ignition(location=(19.0, -99.0))], exceptions, now=now)
        assert markers[0].status == MapStatus.ONLINE
