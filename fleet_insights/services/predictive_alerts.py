"""
Predictive Alert Generator

Projects near-term failures from recent trends:

1. Battery failure: least-squares slope of the latest voltage readings
   (index-spaced, oldest first). A declining slope is extrapolated to the
   failure voltage; if that lands inside the horizon an alert is raised with
   a probability that grows as the ETA shrinks.
2. Connection degradation: too many connection/timeout/server exceptions in
   the trailing days.

Like anomalies, predictive alerts are recomputed from scratch on each pass.
"""

from datetime import datetime, timedelta
from typing import List, Optional, Sequence

import structlog

from fleet_insights.models.telemetry_models import (
    ExceptionEvent,
    IgnitionEvent,
    PredictiveAlert,
    PredictiveAlertType,
)
from fleet_insights.services.analytics_utils import (
    CONNECTION_ISSUE_KEYWORDS,
    clamp,
    group_by_device,
    linear_regression_slope,
    matches_any,
    round_half_up,
    transient_id,
)
from timezone_utils import resolve_now

logger = structlog.get_logger(__name__)


class PredictiveAlertGenerator:
    """
    Generates battery-failure and connection-degradation forecasts.

    Example Usage:
        generator = PredictiveAlertGenerator()
        alerts = generator.generate(ignitions, exceptions, now=now)
    """

    DEFAULT_CONFIG = {
        "voltage_sample_size": 10,
        "min_voltage_samples": 5,
        "slope_threshold": -0.1,
        "failure_voltage": 10.5,
        "horizon_hours": 72.0,
        "min_probability": 20,
        "max_probability": 95,
        "connection_window_days": 3,
        "connection_issue_threshold": 10,
        "connection_eta_hours": 24.0,
        "connection_max_probability": 90,
    }

    BATTERY_RECOMMENDATION = "Schedule battery replacement within 48 hours"
    CONNECTION_RECOMMENDATION = "Check network connectivity and signal strength"

    def __init__(self, **overrides):
        """
        Initialize PredictiveAlertGenerator.

        Args:
            **overrides: Any key of DEFAULT_CONFIG. None values keep the default.
        """
        unknown = set(overrides) - set(self.DEFAULT_CONFIG)
        if unknown:
            raise ValueError(f"Unknown prediction settings: {sorted(unknown)}")

        self.config = dict(self.DEFAULT_CONFIG)
        self.config.update({k: v for k, v in overrides.items() if v is not None})

        if self.config["min_voltage_samples"] < 2:
            raise ValueError("min_voltage_samples must be at least 2")

        logger.debug("PredictiveAlertGenerator initialized", **self.config)

    # ═══════════════════════════════════════════════════════════════════════════
    # BATTERY
    # ═══════════════════════════════════════════════════════════════════════════

    def predict_battery_failure(
        self, device_id: str, ignitions: Sequence[IgnitionEvent], now: datetime
    ) -> Optional[PredictiveAlert]:
        cfg = self.config
        readings = [e for e in ignitions if e.has_voltage][-cfg["voltage_sample_size"]:]
        if len(readings) < cfg["min_voltage_samples"]:
            return None

        readings.sort(key=lambda e: e.timestamp)
        voltages = [e.voltage for e in readings]
        slope = linear_regression_slope(voltages)
        if slope >= cfg["slope_threshold"]:
            return None

        current_voltage = voltages[-1]
        eta_hours = (current_voltage - cfg["failure_voltage"]) / abs(slope)
        if eta_hours >= cfg["horizon_hours"]:
            return None

        probability = clamp(
            100 - (eta_hours / cfg["horizon_hours"]) * 100,
            cfg["min_probability"],
            cfg["max_probability"],
        )

        return PredictiveAlert(
            id=transient_id("battery", device_id, now),
            device_id=device_id,
            kind=PredictiveAlertType.BATTERY_FAILURE,
            probability=round_half_up(probability),
            eta_hours=max(1.0, eta_hours),
            description=f"Battery voltage declining at {abs(slope):.3f}V/hour",
            recommendation=self.BATTERY_RECOMMENDATION,
            created_at=now,
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # CONNECTION
    # ═══════════════════════════════════════════════════════════════════════════

    def predict_connection_degradation(
        self, device_id: str, exceptions: Sequence[ExceptionEvent], now: datetime
    ) -> Optional[PredictiveAlert]:
        cfg = self.config
        cutoff = now - timedelta(days=cfg["connection_window_days"])
        issues = sum(
            1
            for e in exceptions
            if e.timestamp > cutoff and matches_any(e.category, CONNECTION_ISSUE_KEYWORDS)
        )
        if issues <= cfg["connection_issue_threshold"]:
            return None

        probability = min(cfg["connection_max_probability"], issues / 20 * 100)
        return PredictiveAlert(
            id=transient_id("connection", device_id, now),
            device_id=device_id,
            kind=PredictiveAlertType.CONNECTION_DEGRADATION,
            probability=round_half_up(probability),
            eta_hours=float(cfg["connection_eta_hours"]),
            description=(
                f"{issues} connection issues in last {cfg['connection_window_days']} days"
            ),
            recommendation=self.CONNECTION_RECOMMENDATION,
            created_at=now,
        )

    def generate(
        self,
        ignitions: Sequence[IgnitionEvent],
        exceptions: Sequence[ExceptionEvent],
        now: Optional[datetime] = None,
    ) -> List[PredictiveAlert]:
        now = resolve_now(now)
        ignitions_by_device = group_by_device(ignitions)
        exceptions_by_device = group_by_device(exceptions)
        device_ids = list(ignitions_by_device)
        device_ids += [d for d in exceptions_by_device if d not in ignitions_by_device]

        alerts: List[PredictiveAlert] = []
        for device_id in device_ids:
            battery = self.predict_battery_failure(
                device_id, ignitions_by_device.get(device_id, []), now
            )
            if battery:
                alerts.append(battery)

            connection = self.predict_connection_degradation(
                device_id, exceptions_by_device.get(device_id, []), now
            )
            if connection:
                alerts.append(connection)

        logger.debug("Predictive pass complete", alerts=len(alerts))
        return alerts
