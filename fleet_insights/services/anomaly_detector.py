"""
Anomaly Detector

Threshold-based, stateless detection run per device on every pass:
- voltage_drop: mean of the last few voltage readings below threshold
- frequent_restarts: too many exceptions in the trailing hour

There is no suppression across passes. A persisting condition is reported
again on every recomputation and anomaly ids are only unique within a pass.
"""

from datetime import datetime, timedelta
from typing import List, Optional, Sequence

import structlog

from fleet_insights.models.telemetry_models import (
    Anomaly,
    AnomalyType,
    ExceptionEvent,
    IgnitionEvent,
    Severity,
)
from fleet_insights.services.analytics_utils import group_by_device, mean, transient_id
from timezone_utils import resolve_now

logger = structlog.get_logger(__name__)


class AnomalyDetector:
    """
    Detects voltage and stability anomalies.

    Example Usage:
        detector = AnomalyDetector(voltage_drop_threshold=11.8)
        for anomaly in detector.detect(ignitions, exceptions, now=now):
            print(anomaly.kind, anomaly.severity)
    """

    DEFAULT_CONFIG = {
        "voltage_window": 5,
        "min_voltage_readings": 3,
        "voltage_drop_threshold": 11.5,
        "voltage_critical_threshold": 11.0,
        "restart_threshold_per_hour": 5,
    }

    RECOMMENDATIONS = {
        AnomalyType.VOLTAGE_DROP: "Check battery and charging system",
        AnomalyType.FREQUENT_RESTARTS: (
            "Investigate device stability and network connectivity"
        ),
    }

    RESTART_WINDOW = timedelta(hours=1)

    def __init__(
        self,
        voltage_window: Optional[int] = None,
        min_voltage_readings: Optional[int] = None,
        voltage_drop_threshold: Optional[float] = None,
        voltage_critical_threshold: Optional[float] = None,
        restart_threshold_per_hour: Optional[int] = None,
    ):
        config = dict(self.DEFAULT_CONFIG)
        overrides = {
            "voltage_window": voltage_window,
            "min_voltage_readings": min_voltage_readings,
            "voltage_drop_threshold": voltage_drop_threshold,
            "voltage_critical_threshold": voltage_critical_threshold,
            "restart_threshold_per_hour": restart_threshold_per_hour,
        }
        config.update({k: v for k, v in overrides.items() if v is not None})

        self.voltage_window = config["voltage_window"]
        self.min_voltage_readings = config["min_voltage_readings"]
        self.voltage_drop_threshold = config["voltage_drop_threshold"]
        self.voltage_critical_threshold = config["voltage_critical_threshold"]
        self.restart_threshold_per_hour = config["restart_threshold_per_hour"]

        if self.voltage_window < self.min_voltage_readings:
            raise ValueError("voltage_window must be >= min_voltage_readings")

        logger.debug("AnomalyDetector initialized", **config)

    def _check_voltage(
        self, device_id: str, ignitions: Sequence[IgnitionEvent], now: datetime
    ) -> Optional[Anomaly]:
        readings = [e.voltage for e in ignitions if e.has_voltage]
        readings = readings[-self.voltage_window:]
        if len(readings) < self.min_voltage_readings:
            return None

        avg_voltage = mean(readings)
        if avg_voltage >= self.voltage_drop_threshold:
            return None

        severity = (
            Severity.CRITICAL
            if avg_voltage < self.voltage_critical_threshold
            else Severity.HIGH
        )
        return Anomaly(
            id=transient_id("voltage", device_id, now),
            device_id=device_id,
            kind=AnomalyType.VOLTAGE_DROP,
            severity=severity,
            description=f"Low voltage detected: {avg_voltage:.2f}V",
            detected_at=now,
            observed_value=avg_voltage,
            threshold=self.voltage_drop_threshold,
            recommendation=self.RECOMMENDATIONS[AnomalyType.VOLTAGE_DROP],
        )

    def _check_restarts(
        self, device_id: str, exceptions: Sequence[ExceptionEvent], now: datetime
    ) -> Optional[Anomaly]:
        cutoff = now - self.RESTART_WINDOW
        recent = sum(1 for e in exceptions if e.timestamp > cutoff)
        if recent <= self.restart_threshold_per_hour:
            return None

        return Anomaly(
            id=transient_id("restarts", device_id, now),
            device_id=device_id,
            kind=AnomalyType.FREQUENT_RESTARTS,
            severity=Severity.HIGH,
            description=f"{recent} exceptions in the last hour",
            detected_at=now,
            observed_value=float(recent),
            threshold=float(self.restart_threshold_per_hour),
            recommendation=self.RECOMMENDATIONS[AnomalyType.FREQUENT_RESTARTS],
        )

    def detect(
        self,
        ignitions: Sequence[IgnitionEvent],
        exceptions: Sequence[ExceptionEvent],
        now: Optional[datetime] = None,
    ) -> List[Anomaly]:
        """
        Run every check for every device.

        Devices are visited in first-seen order (ignitions first, then
        exceptions) and each device yields its voltage anomaly before its
        restart anomaly.
        """
        now = resolve_now(now)
        ignitions_by_device = group_by_device(ignitions)
        exceptions_by_device = group_by_device(exceptions)
        device_ids = list(ignitions_by_device)
        device_ids += [d for d in exceptions_by_device if d not in ignitions_by_device]

        anomalies: List[Anomaly] = []
        for device_id in device_ids:
            voltage = self._check_voltage(
                device_id, ignitions_by_device.get(device_id, []), now
            )
            if voltage:
                anomalies.append(voltage)

            restarts = self._check_restarts(
                device_id, exceptions_by_device.get(device_id, []), now
            )
            if restarts:
                anomalies.append(restarts)

        logger.debug("Anomaly pass complete", devices=len(device_ids), anomalies=len(anomalies))
        return anomalies
