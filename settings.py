"""
Fleet Insights Settings v1.0.0
Centralized configuration from environment variables

Every analytics threshold used by the engine lives here so that operators
can tune the heuristics without touching code. Defaults reproduce the
dashboard's original behaviour.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _get_env(key: str, default: str = "", required: bool = False) -> str:
    """Get environment variable with optional requirement enforcement."""
    value = os.getenv(key, default)
    if required and not value:
        raise ValueError(f"Required environment variable {key} is not set!")
    return value


def _get_env_int(key: str, default: int) -> int:
    """Get integer environment variable."""
    return int(os.getenv(key, str(default)))


def _get_env_float(key: str, default: float) -> float:
    """Get float environment variable."""
    return float(os.getenv(key, str(default)))


def _get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    return os.getenv(key, str(default)).lower() in ("true", "1", "yes")


# =============================================================================
# DEVICE HEALTH SETTINGS
# =============================================================================
@dataclass
class HealthSettings:
    """Composite health score configuration."""

    nominal_voltage: float = field(
        default_factory=lambda: _get_env_float("HEALTH_NOMINAL_VOLTAGE", 12.0)
    )
    full_charge_voltage: float = field(
        default_factory=lambda: _get_env_float("HEALTH_FULL_CHARGE_VOLTAGE", 12.6)
    )
    voltage_sample_size: int = field(
        default_factory=lambda: _get_env_int("HEALTH_VOLTAGE_SAMPLES", 10)
    )

    # Weights must add up to 1.0
    connectivity_weight: float = 0.30
    battery_weight: float = 0.25
    error_rate_weight: float = 0.25
    uptime_weight: float = 0.20

    @property
    def weights_valid(self) -> bool:
        total = (
            self.connectivity_weight
            + self.battery_weight
            + self.error_rate_weight
            + self.uptime_weight
        )
        return abs(total - 1.0) < 1e-9


# =============================================================================
# ANOMALY SETTINGS
# =============================================================================
@dataclass
class AnomalySettings:
    """Threshold-based anomaly detection configuration."""

    voltage_window: int = field(
        default_factory=lambda: _get_env_int("ANOMALY_VOLTAGE_WINDOW", 5)
    )
    min_voltage_readings: int = field(
        default_factory=lambda: _get_env_int("ANOMALY_MIN_VOLTAGE_READINGS", 3)
    )
    voltage_drop_threshold: float = field(
        default_factory=lambda: _get_env_float("ANOMALY_VOLTAGE_DROP", 11.5)
    )
    voltage_critical_threshold: float = field(
        default_factory=lambda: _get_env_float("ANOMALY_VOLTAGE_CRITICAL", 11.0)
    )
    restart_threshold_per_hour: int = field(
        default_factory=lambda: _get_env_int("ANOMALY_RESTARTS_PER_HOUR", 5)
    )


# =============================================================================
# PREDICTIVE ALERT SETTINGS
# =============================================================================
@dataclass
class PredictionSettings:
    """Trend projection configuration for predictive alerts."""

    voltage_sample_size: int = field(
        default_factory=lambda: _get_env_int("PREDICT_VOLTAGE_SAMPLES", 10)
    )
    min_voltage_samples: int = field(
        default_factory=lambda: _get_env_int("PREDICT_MIN_VOLTAGE_SAMPLES", 5)
    )
    slope_threshold: float = field(
        default_factory=lambda: _get_env_float("PREDICT_SLOPE_THRESHOLD", -0.1)
    )
    failure_voltage: float = field(
        default_factory=lambda: _get_env_float("PREDICT_FAILURE_VOLTAGE", 10.5)
    )
    horizon_hours: float = field(
        default_factory=lambda: _get_env_float("PREDICT_HORIZON_HOURS", 72.0)
    )
    min_probability: int = 20
    max_probability: int = 95

    connection_window_days: int = field(
        default_factory=lambda: _get_env_int("PREDICT_CONNECTION_WINDOW_DAYS", 3)
    )
    connection_issue_threshold: int = field(
        default_factory=lambda: _get_env_int("PREDICT_CONNECTION_THRESHOLD", 10)
    )
    connection_eta_hours: float = 24.0
    connection_max_probability: int = 90


# =============================================================================
# NETWORK INCIDENT SETTINGS
# =============================================================================
@dataclass
class IncidentSettings:
    """Network incident grouping configuration."""

    incident_window_minutes: float = field(
        default_factory=lambda: _get_env_float("INCIDENT_WINDOW_MINUTES", 5.0)
    )
    # Estimated fleet size used for impact percentage
    total_device_count: int = field(
        default_factory=lambda: _get_env_int("FLEET_TOTAL_DEVICES", 10)
    )
    status_window_minutes: float = field(
        default_factory=lambda: _get_env_float("NETWORK_STATUS_WINDOW_MINUTES", 30.0)
    )
    outage_device_threshold: int = field(
        default_factory=lambda: _get_env_int("NETWORK_OUTAGE_DEVICES", 3)
    )


# =============================================================================
# NOTIFICATION SETTINGS
# =============================================================================
@dataclass
class NotificationSettings:
    """Operator notification configuration."""

    enabled: bool = field(
        default_factory=lambda: _get_env_bool("NOTIFICATIONS_ENABLED", True)
    )
    sound_enabled: bool = field(
        default_factory=lambda: _get_env_bool("NOTIFICATIONS_SOUND", True)
    )
    max_notifications: int = field(
        default_factory=lambda: _get_env_int("NOTIFICATIONS_MAX", 100)
    )
    offline_alert_hours: float = field(
        default_factory=lambda: _get_env_float("ALERT_OFFLINE_HOURS", 2.0)
    )
    battery_alert_voltage: float = field(
        default_factory=lambda: _get_env_float("ALERT_BATTERY_VOLTAGE", 11.5)
    )


# =============================================================================
# APPLICATION SETTINGS
# =============================================================================
@dataclass
class AppSettings:
    """General application settings."""

    debug: bool = field(default_factory=lambda: _get_env_bool("DEBUG", False))
    log_level: str = field(default_factory=lambda: _get_env("LOG_LEVEL", "INFO"))
    version: str = "1.0.0"

    logs_dir: Path = field(
        default_factory=lambda: Path(
            _get_env("LOGS_DIR", str(Path(__file__).parent / "logs"))
        )
    )
    retained_events_per_device: int = field(
        default_factory=lambda: _get_env_int("RETAINED_EVENTS_PER_DEVICE", 100)
    )


# =============================================================================
# SETTINGS CONTAINER
# =============================================================================
class Settings:
    """Settings container - one instance per composition root."""

    def __init__(self):
        self.health = HealthSettings()
        self.anomaly = AnomalySettings()
        self.prediction = PredictionSettings()
        self.incidents = IncidentSettings()
        self.notifications = NotificationSettings()
        self.app = AppSettings()

    def validate(self) -> List[str]:
        """Validate settings and return list of warnings."""
        warnings = []

        if not self.health.weights_valid:
            warnings.append("⚠️ Health score weights do not add up to 1.0")

        if self.incidents.total_device_count <= 0:
            warnings.append(
                "⚠️ FLEET_TOTAL_DEVICES must be positive - incident impact will be 0%"
            )

        if self.notifications.max_notifications <= 0:
            warnings.append("⚠️ NOTIFICATIONS_MAX must be positive")

        if not self.notifications.enabled:
            warnings.append("ℹ️ Notifications disabled")

        return warnings

    def to_dict(self) -> Dict:
        """Export settings as dictionary (for debugging)."""
        return {
            "version": self.app.version,
            "debug": self.app.debug,
            "log_level": self.app.log_level,
            "total_device_count": self.incidents.total_device_count,
            "incident_window_minutes": self.incidents.incident_window_minutes,
            "notifications_enabled": self.notifications.enabled,
            "max_notifications": self.notifications.max_notifications,
        }


def get_settings() -> Settings:
    """Build a settings instance from the current environment."""
    return Settings()
