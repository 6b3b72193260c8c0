"""
Device Health Scorer

Composite 0-100 health score per device built from four factors:
- connectivity: activity in the last hour (10 points per event)
- battery health: recent average voltage against a full-charge reference
- error rate: share of the device's events that are not exceptions
- uptime: activity in the last 24 hours (5 points per event)

Every factor degrades to a defined default on empty input so the score is
always available, even for a device that has never reported.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

import structlog

from fleet_insights.models.telemetry_models import (
    DeviceHealthScore,
    ExceptionEvent,
    HealthFactors,
    IgnitionEvent,
)
from fleet_insights.services.analytics_utils import (
    clamp,
    device_ids_in_order,
    mean,
    round_half_up,
)
from timezone_utils import resolve_now

logger = structlog.get_logger(__name__)


class DeviceHealthScorer:
    """
    Scores device health from its ignition and exception history.

    Example Usage:
        scorer = DeviceHealthScorer()
        health = scorer.calculate_score("864...", ignitions, exceptions, now=now)
        print(health.score, health.factors.battery_health)
    """

    DEFAULT_CONFIG = {
        "nominal_voltage": 12.0,
        "full_charge_voltage": 12.6,
        "voltage_sample_size": 10,
    }

    WEIGHTS = {
        "connectivity": 0.30,
        "battery_health": 0.25,
        "error_rate": 0.25,
        "uptime": 0.20,
    }

    CONNECTIVITY_WINDOW = timedelta(hours=1)
    UPTIME_WINDOW = timedelta(hours=24)
    CONNECTIVITY_POINTS_PER_EVENT = 10
    UPTIME_POINTS_PER_EVENT = 5

    def __init__(
        self,
        nominal_voltage: Optional[float] = None,
        full_charge_voltage: Optional[float] = None,
        voltage_sample_size: Optional[int] = None,
        weights: Optional[Dict[str, float]] = None,
    ):
        """
        Initialize DeviceHealthScorer with optional custom configuration.

        Args:
            nominal_voltage: Voltage assumed when no readings exist (default 12.0)
            full_charge_voltage: Voltage that maps to 100% battery (default 12.6)
            voltage_sample_size: Number of most recent readings averaged (default 10)
            weights: Factor weights, keys as in WEIGHTS
        """
        self.nominal_voltage = (
            nominal_voltage
            if nominal_voltage is not None
            else self.DEFAULT_CONFIG["nominal_voltage"]
        )
        self.full_charge_voltage = (
            full_charge_voltage
            if full_charge_voltage is not None
            else self.DEFAULT_CONFIG["full_charge_voltage"]
        )
        self.voltage_sample_size = (
            voltage_sample_size
            if voltage_sample_size is not None
            else self.DEFAULT_CONFIG["voltage_sample_size"]
        )
        self.weights = dict(weights or self.WEIGHTS)

        if self.full_charge_voltage <= 0:
            raise ValueError("full_charge_voltage must be positive")
        if self.voltage_sample_size <= 0:
            raise ValueError("voltage_sample_size must be positive")

        logger.debug(
            "DeviceHealthScorer initialized",
            full_charge_voltage=self.full_charge_voltage,
            sample_size=self.voltage_sample_size,
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # FACTORS
    # ═══════════════════════════════════════════════════════════════════════════

    def _connectivity(self, timestamps: Sequence[datetime], now: datetime) -> float:
        cutoff = now - self.CONNECTIVITY_WINDOW
        recent = sum(1 for ts in timestamps if ts > cutoff)
        return min(100.0, recent * self.CONNECTIVITY_POINTS_PER_EVENT)

    def _battery_health(self, ignitions: Sequence[IgnitionEvent]) -> float:
        readings = [e.voltage for e in ignitions if e.has_voltage]
        readings = readings[-self.voltage_sample_size:]
        avg_voltage = mean(readings) if readings else self.nominal_voltage
        return clamp(avg_voltage / self.full_charge_voltage * 100, 0.0, 100.0)

    @staticmethod
    def _error_rate(ignition_count: int, exception_count: int) -> float:
        total = ignition_count + exception_count
        if total == 0:
            return 100.0
        return max(0.0, 100.0 - exception_count / total * 100)

    def _uptime(self, timestamps: Sequence[datetime], now: datetime) -> float:
        cutoff = now - self.UPTIME_WINDOW
        recent = sum(1 for ts in timestamps if ts > cutoff)
        return min(100.0, recent * self.UPTIME_POINTS_PER_EVENT)

    # ═══════════════════════════════════════════════════════════════════════════
    # PUBLIC API
    # ═══════════════════════════════════════════════════════════════════════════

    def calculate_score(
        self,
        device_id: str,
        ignitions: Sequence[IgnitionEvent],
        exceptions: Sequence[ExceptionEvent],
        now: Optional[datetime] = None,
    ) -> DeviceHealthScore:
        """
        Calculate the composite health score for one device.

        Events belonging to other devices are ignored, so fleet-wide
        collections can be passed directly.
        """
        now = resolve_now(now)
        device_ignitions = [e for e in ignitions if e.device_id == device_id]
        device_exceptions = [e for e in exceptions if e.device_id == device_id]
        timestamps = [e.timestamp for e in device_ignitions] + [
            e.timestamp for e in device_exceptions
        ]

        connectivity = self._connectivity(timestamps, now)
        battery_health = self._battery_health(device_ignitions)
        error_rate = self._error_rate(len(device_ignitions), len(device_exceptions))
        uptime = self._uptime(timestamps, now)

        # Weighted on unrounded factors, factors rounded only for reporting
        score = round_half_up(
            connectivity * self.weights["connectivity"]
            + battery_health * self.weights["battery_health"]
            + error_rate * self.weights["error_rate"]
            + uptime * self.weights["uptime"]
        )

        return DeviceHealthScore(
            device_id=device_id,
            score=int(clamp(score, 0, 100)),
            factors=HealthFactors(
                connectivity=round_half_up(connectivity),
                battery_health=round_half_up(battery_health),
                error_rate=round_half_up(error_rate),
                uptime=round_half_up(uptime),
            ),
            computed_at=now,
        )

    def calculate_fleet_scores(
        self,
        ignitions: Sequence[IgnitionEvent],
        exceptions: Sequence[ExceptionEvent],
        now: Optional[datetime] = None,
    ) -> List[DeviceHealthScore]:
        """Score every device that appears in either collection"""
        now = resolve_now(now)
        scores = [
            self.calculate_score(device_id, ignitions, exceptions, now)
            for device_id in device_ids_in_order(ignitions, exceptions)
        ]
        logger.debug("Fleet health scored", devices=len(scores))
        return scores
