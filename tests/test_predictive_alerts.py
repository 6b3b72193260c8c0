"""
Tests for PredictiveAlertGenerator
"""

import pytest

from fleet_insights.models.telemetry_models import PredictiveAlertType
from fleet_insights.services.predictive_alerts import PredictiveAlertGenerator


@pytest.fixture
def generator():
    return PredictiveAlertGenerator()


def readings(make_ignition, voltages, device_id="DEV001"):
    """One reading per hour, oldest first"""
    count = len(voltages)
    return [
        make_ignition(device_id, minutes_ago=(count - i) * 60, voltage=v)
        for i, v in enumerate(voltages)
    ]


class TestBatteryFailure:
    def test_steep_decline_capped_at_max_probability(self, generator, now, make_ignition):
        ignitions = readings(make_ignition, [12.0, 11.8, 11.6, 11.4, 11.2])
        alert = generator.predict_battery_failure("DEV001", ignitions, now)

        assert alert is not None
        assert alert.kind == PredictiveAlertType.BATTERY_FAILURE
        assert alert.eta_hours == pytest.approx(3.5)
        assert alert.probability == 95
        assert alert.recommendation == "Schedule battery replacement within 48 hours"
        assert "0.200V/hour" in alert.description

    def test_probability_grows_as_eta_shrinks(self, generator, now, make_ignition):
        ignitions = readings(make_ignition, [12.0, 11.89, 11.78, 11.67, 11.56])
        alert = generator.predict_battery_failure("DEV001", ignitions, now)

        # eta = (11.56 - 10.5) / 0.11 ~= 9.64h -> 100 - 13.4
        assert alert.eta_hours == pytest.approx(9.636, abs=0.01)
        assert alert.probability == 87

    def test_eta_never_below_one_hour(self, generator, now, make_ignition):
        ignitions = readings(make_ignition, [11.2, 11.0, 10.8, 10.6, 10.4])
        alert = generator.predict_battery_failure("DEV001", ignitions, now)
        assert alert.eta_hours == 1.0
        assert alert.probability == 95

    def test_readings_sorted_by_timestamp(self, generator, now, make_ignition):
        ignitions = readings(make_ignition, [12.0, 11.8, 11.6, 11.4, 11.2])
        ignitions.reverse()
        alert = generator.predict_battery_failure("DEV001", ignitions, now)
        assert alert is not None
        assert alert.eta_hours == pytest.approx(3.5)

    def test_requires_five_readings(self, generator, now, make_ignition):
        ignitions = readings(make_ignition, [12.0, 11.5, 11.0, 10.8])
        assert generator.predict_battery_failure("DEV001", ignitions, now) is None

    def test_flat_voltage_no_alert(self, generator, now, make_ignition):
        ignitions = readings(make_ignition, [12.4] * 6)
        assert generator.predict_battery_failure("DEV001", ignitions, now) is None

    def test_gentle_decline_no_alert(self, generator, now, make_ignition):
        ignitions = readings(make_ignition, [12.4, 12.35, 12.3, 12.25, 12.2])
        assert generator.predict_battery_failure("DEV001", ignitions, now) is None

    def test_eta_beyond_horizon_no_alert(self, now, make_ignition):
        generator = PredictiveAlertGenerator(horizon_hours=1)
        ignitions = readings(make_ignition, [12.0, 11.8, 11.6, 11.4, 11.2])
        assert generator.predict_battery_failure("DEV001", ignitions, now) is None


class TestConnectionDegradation:
    def test_more_than_ten_connection_issues(self, generator, now, make_exception):
        exceptions = [
            make_exception(minutes_ago=60 * i, category="Connection Timeout") for i in range(11)
        ]
        alert = generator.predict_connection_degradation("DEV001", exceptions, now)

        assert alert.kind == PredictiveAlertType.CONNECTION_DEGRADATION
        assert alert.probability == 55
        assert alert.eta_hours == 24
        assert alert.description == "11 connection issues in last 3 days"

    def test_probability_capped(self, generator, now, make_exception):
        exceptions = [make_exception(minutes_ago=i, category="Server Down") for i in range(30)]
        alert = generator.predict_connection_degradation("DEV001", exceptions, now)
        assert alert.probability == 90

    def test_ten_issues_not_enough(self, generator, now, make_exception):
        exceptions = [make_exception(minutes_ago=i, category="Connection Timeout") for i in range(10)]
        assert generator.predict_connection_degradation("DEV001", exceptions, now) is None

    def test_old_and_unrelated_exceptions_ignored(self, generator, now, make_exception):
        exceptions = [
            make_exception(minutes_ago=4 * 24 * 60, category="Connection Timeout")
            for _ in range(15)
        ]
        exceptions += [make_exception(minutes_ago=5, category="Low Battery") for _ in range(15)]
        assert generator.predict_connection_degradation("DEV001", exceptions, now) is None


class TestGenerate:
    def test_generate_runs_both_predictions_per_device(
        self, generator, now, make_ignition, make_exception
    ):
        ignitions = readings(make_ignition, [12.0, 11.8, 11.6, 11.4, 11.2], device_id="A")
        exceptions = [make_exception("B", minutes_ago=i, category="Server Down") for i in range(12)]

        alerts = generator.generate(ignitions, exceptions, now=now)
        assert [(a.device_id, a.kind) for a in alerts] == [
            ("A", PredictiveAlertType.BATTERY_FAILURE),
            ("B", PredictiveAlertType.CONNECTION_DEGRADATION),
        ]

    def test_unknown_override_rejected(self):
        with pytest.raises(ValueError):
            PredictiveAlertGenerator(not_a_setting=1)

    def test_none_override_keeps_default(self):
        generator = PredictiveAlertGenerator(failure_voltage=None)
        assert generator.config["failure_voltage"] == 10.5
