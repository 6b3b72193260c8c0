"""
Tests for TrendAnalyzer
"""

import pytest

from fleet_insights.services.trend_analyzer import TrendAnalyzer


@pytest.fixture
def analyzer():
    return TrendAnalyzer()


class TestTrendData:
    def test_seven_days_oldest_first(self, analyzer, now):
        points = analyzer.generate_trend_data([], [], now=now)
        assert [p.date for p in points] == [
            "Jul 17", "Jul 18", "Jul 19", "Jul 20", "Jul 21", "Jul 22", "Jul 23",
        ]
        assert all(p.exceptions == 0 and p.ignitions == 0 for p in points)

    def test_events_bucketed_by_utc_day(self, analyzer, now, make_ignition, make_exception):
        ignitions = [
            make_ignition(minutes_ago=30),
            make_ignition(minutes_ago=2 * 24 * 60),
        ]
        exceptions = [
            make_exception(minutes_ago=60, category="Server Down"),
            make_exception(minutes_ago=24 * 60, category="Connection Timeout"),
            make_exception(minutes_ago=24 * 60 + 5, category="Low Battery"),
        ]
        points = analyzer.generate_trend_data(ignitions, exceptions, now=now)
        today, yesterday, two_days_ago = points[-1], points[-2], points[-3]

        assert today.ignitions == 1
        assert today.exceptions == 1
        assert today.critical_issues == 1
        assert today.server_downtime == 1

        assert yesterday.exceptions == 2
        assert yesterday.critical_issues == 1
        assert yesterday.server_downtime == 0

        assert two_days_ago.ignitions == 1

    def test_midnight_boundary(self, analyzer, now, make_ignition):
        # 20 hours before 20:00 is exactly midnight, which belongs to today
        points = analyzer.generate_trend_data([make_ignition(minutes_ago=20 * 60)], [], now=now)
        assert points[-1].ignitions == 1
        assert points[-2].ignitions == 0

    def test_events_outside_range_ignored(self, analyzer, now, make_ignition):
        points = analyzer.generate_trend_data([make_ignition(minutes_ago=8 * 24 * 60)], [], now=now)
        assert sum(p.ignitions for p in points) == 0

    def test_custom_day_count(self, analyzer, now):
        points = analyzer.generate_trend_data([], [], days=3, now=now)
        assert [p.date for p in points] == ["Jul 21", "Jul 22", "Jul 23"]

    def test_zero_days(self, analyzer, now):
        assert analyzer.generate_trend_data([], [], days=0, now=now) == []

    def test_invalid_default_rejected(self):
        with pytest.raises(ValueError):
            TrendAnalyzer(default_days=0)
