"""
Event Repository - ingestion boundary for tracker logs

Raw records arrive from the live-update transport as loosely shaped dicts
(device id under `deviceImei` or `imei`, category under `main` or
`errorCode`, location as latitude/longitude or lat/lng). LogNormalizer maps
them once into IgnitionEvent / ExceptionEvent; nothing downstream looks at
raw records.

EventRepository keeps the normalized events in memory, grouped per device,
mirroring the transport's per-device snapshot pushes.
"""

import threading
import uuid
from collections import OrderedDict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import structlog

from fleet_insights.models.telemetry_models import (
    ExceptionEvent,
    ExceptionSeverity,
    IgnitionEvent,
    Location,
)
from fleet_insights.services.timestamp_normalizer import parse_timestamp

logger = structlog.get_logger(__name__)

DEVICE_ID_KEYS = ("deviceImei", "imei", "device_id")


def _first_present(record: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = record.get(key)
        if value not in (None, ""):
            return value
    return None


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class LogNormalizer:
    """Maps raw transport records to canonical events."""

    ACC_ON = "acc_on"

    def __init__(self, now: Optional[datetime] = None):
        """
        Args:
            now: Fallback instant for unparseable timestamps (default: wall clock
                at parse time)
        """
        self.now = now

    def resolve_device_id(
        self, record: Mapping[str, Any], device_hint: Optional[str] = None
    ) -> Optional[str]:
        value = _first_present(record, DEVICE_ID_KEYS)
        if value is None:
            value = device_hint
        return str(value) if value not in (None, "") else None

    def _timestamp(self, record: Mapping[str, Any]) -> datetime:
        raw = _first_present(record, ("timestamp", "createdAt"))
        return parse_timestamp(raw, self.now)

    @staticmethod
    def _record_id(record: Mapping[str, Any]) -> str:
        value = record.get("id")
        return str(value) if value not in (None, "") else uuid.uuid4().hex

    @staticmethod
    def _ignition_state(record: Mapping[str, Any]) -> bool:
        status = record.get("ignitionStatus")
        if status is None:
            return record.get("logType") == LogNormalizer.ACC_ON
        if isinstance(status, str):
            return status.strip().lower() in ("on", "true", "1")
        return bool(status)

    @staticmethod
    def _voltage(record: Mapping[str, Any]) -> Optional[float]:
        voltage = _as_number(record.get("voltage"))
        return voltage if voltage else None

    @staticmethod
    def _location(record: Mapping[str, Any]) -> Optional[Location]:
        raw = record.get("location")
        if not isinstance(raw, Mapping):
            return None
        lat = _as_number(_first_present(raw, ("latitude", "lat")))
        lon = _as_number(_first_present(raw, ("longitude", "lng", "lon")))
        # 0/0 is what the transport sends for "no fix"
        if not lat or not lon:
            return None
        return Location(lat=lat, lon=lon)

    @staticmethod
    def _severity(record: Mapping[str, Any]) -> ExceptionSeverity:
        raw = record.get("severity")
        try:
            return ExceptionSeverity(str(raw).lower())
        except ValueError:
            return ExceptionSeverity.MEDIUM

    def normalize_ignition(
        self, record: Mapping[str, Any], device_hint: Optional[str] = None
    ) -> Optional[IgnitionEvent]:
        """Returns None (with a warning) when no device id can be resolved."""
        device_id = self.resolve_device_id(record, device_hint)
        if device_id is None:
            logger.warning("Dropping ignition record without device id", record_id=record.get("id"))
            return None

        return IgnitionEvent(
            id=self._record_id(record),
            device_id=device_id,
            timestamp=self._timestamp(record),
            ignition_on=self._ignition_state(record),
            voltage=self._voltage(record),
            location=self._location(record),
            address=record.get("address") or None,
            message=record.get("message") or None,
            log_type=record.get("logType") or None,
        )

    def normalize_exception(
        self, record: Mapping[str, Any], device_hint: Optional[str] = None
    ) -> Optional[ExceptionEvent]:
        """Returns None (with a warning) when no device id can be resolved."""
        device_id = self.resolve_device_id(record, device_hint)
        if device_id is None:
            logger.warning("Dropping exception record without device id", record_id=record.get("id"))
            return None

        return ExceptionEvent(
            id=self._record_id(record),
            device_id=device_id,
            timestamp=self._timestamp(record),
            category=str(_first_present(record, ("main", "errorCode")) or ""),
            detail=str(_first_present(record, ("details", "errorMessage")) or ""),
            severity=self._severity(record),
        )


class EventRepository:
    """
    In-memory store of normalized events, grouped per device.

    Each device keeps at most `max_events_per_device` events per stream; the
    oldest stored entries are evicted first. Event order within a device is
    the order in which records were supplied.
    """

    DEFAULT_MAX_EVENTS_PER_DEVICE = 100

    def __init__(
        self,
        normalizer: Optional[LogNormalizer] = None,
        max_events_per_device: Optional[int] = None,
    ):
        self.normalizer = normalizer or LogNormalizer()
        self.max_events_per_device = (
            max_events_per_device
            if max_events_per_device is not None
            else self.DEFAULT_MAX_EVENTS_PER_DEVICE
        )
        if self.max_events_per_device <= 0:
            raise ValueError("max_events_per_device must be positive")

        self._ignitions: "OrderedDict[str, List[IgnitionEvent]]" = OrderedDict()
        self._exceptions: "OrderedDict[str, List[ExceptionEvent]]" = OrderedDict()
        self._lock = threading.Lock()

        logger.debug("EventRepository initialized", max_per_device=self.max_events_per_device)

    def _trim(self, events: List) -> List:
        return events[-self.max_events_per_device:]

    def _normalize_all(
        self,
        ignition_records: Iterable[Mapping[str, Any]],
        exception_records: Iterable[Mapping[str, Any]],
        device_hint: Optional[str] = None,
    ) -> Tuple[List[IgnitionEvent], List[ExceptionEvent]]:
        ignitions = [
            e
            for e in (self.normalizer.normalize_ignition(r, device_hint) for r in ignition_records)
            if e is not None
        ]
        exceptions = [
            e
            for e in (self.normalizer.normalize_exception(r, device_hint) for r in exception_records)
            if e is not None
        ]
        return ignitions, exceptions

    def replace_device_snapshot(
        self,
        device_id: str,
        ignition_records: Optional[Iterable[Mapping[str, Any]]] = None,
        exception_records: Optional[Iterable[Mapping[str, Any]]] = None,
    ) -> Dict[str, int]:
        """
        Replace one device's events with a fresh snapshot.

        A stream passed as None is left untouched, so ignition and exception
        snapshots can be pushed independently.
        """
        ignitions, exceptions = self._normalize_all(
            ignition_records or [], exception_records or [], device_hint=device_id
        )

        with self._lock:
            if ignition_records is not None:
                self._ignitions[device_id] = self._trim(
                    [e for e in ignitions if e.device_id == device_id]
                )
            if exception_records is not None:
                self._exceptions[device_id] = self._trim(
                    [e for e in exceptions if e.device_id == device_id]
                )

        logger.debug(
            "Device snapshot replaced",
            device_id=device_id,
            ignitions=len(ignitions),
            exceptions=len(exceptions),
        )
        return {"ignitions": len(ignitions), "exceptions": len(exceptions)}

    def ingest(
        self,
        ignition_records: Iterable[Mapping[str, Any]] = (),
        exception_records: Iterable[Mapping[str, Any]] = (),
    ) -> Dict[str, int]:
        """Append records from any devices. Returns counts actually stored."""
        ignitions, exceptions = self._normalize_all(ignition_records, exception_records)

        with self._lock:
            for event in ignitions:
                bucket = self._ignitions.setdefault(event.device_id, [])
                bucket.append(event)
                self._ignitions[event.device_id] = self._trim(bucket)
            for event in exceptions:
                bucket = self._exceptions.setdefault(event.device_id, [])
                bucket.append(event)
                self._exceptions[event.device_id] = self._trim(bucket)

        return {"ignitions": len(ignitions), "exceptions": len(exceptions)}

    def get_ignition_events(self, device_id: Optional[str] = None) -> List[IgnitionEvent]:
        with self._lock:
            if device_id is not None:
                return list(self._ignitions.get(device_id, []))
            return [e for events in self._ignitions.values() for e in events]

    def get_exception_events(self, device_id: Optional[str] = None) -> List[ExceptionEvent]:
        with self._lock:
            if device_id is not None:
                return list(self._exceptions.get(device_id, []))
            return [e for events in self._exceptions.values() for e in events]

    def get_device_ids(self) -> List[str]:
        """Devices with at least one stored event, in first-seen order"""
        with self._lock:
            ids = [d for d, events in self._ignitions.items() if events]
            ids += [d for d, events in self._exceptions.items() if events and d not in ids]
            return ids

    def clear(self) -> None:
        with self._lock:
            self._ignitions.clear()
            self._exceptions.clear()
