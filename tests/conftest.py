"""
Pytest Configuration for Fleet Insights Tests
"""

import pytest

# Import all fixtures
from tests.fixtures.telemetry_fixtures import *  # noqa

ENGINE_ENV_KEYS = (
    "FLEET_TOTAL_DEVICES",
    "INCIDENT_WINDOW_MINUTES",
    "NOTIFICATIONS_MAX",
    "NOTIFICATIONS_ENABLED",
    "NOTIFICATIONS_SOUND",
    "HEALTH_FULL_CHARGE_VOLTAGE",
    "ANOMALY_VOLTAGE_DROP",
    "RETAINED_EVENTS_PER_DEVICE",
    "LOG_LEVEL",
    "DEBUG",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove engine overrides so Settings falls back to its defaults."""
    for key in ENGINE_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch
