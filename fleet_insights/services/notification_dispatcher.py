"""
Notification Dispatcher

Session-lived store of operator alerts with acknowledgement and listeners.

- add() stamps a draft with id/timestamp, prepends it, trims the history to
  the most recent `max_notifications`, hands it to the optional delivery
  hook (browser popup / sound, owned by the caller) and notifies listeners.
- Alerts are not deduplicated; identical drafts produce distinct entries.
- acknowledge() is idempotent and ignores unknown ids.

One instance is created per composition root and passed explicitly to its
users. Callers only ever receive copies of stored notifications; state
changes go through acknowledge(). Mutations are serialized with a re-entrant lock so a listener may call
back into the dispatcher.
"""

import threading
from dataclasses import replace
from datetime import datetime
from typing import Callable, List, Optional

import structlog

from fleet_insights.models.notification_models import (
    AlertNotification,
    NotificationDraft,
    NotificationKind,
)
from fleet_insights.services.analytics_utils import random_suffix, round_half_up
from timezone_utils import resolve_now, to_epoch_ms

logger = structlog.get_logger(__name__)

Listener = Callable[[List[AlertNotification]], None]
DeliveryHook = Callable[[AlertNotification, bool], None]


class NotificationDispatcher:
    """Bounded, acknowledgeable alert log with subscriber callbacks."""

    MAX_NOTIFICATIONS = 100

    def __init__(
        self,
        max_notifications: Optional[int] = None,
        enabled: bool = True,
        sound_enabled: bool = True,
        delivery: Optional[DeliveryHook] = None,
    ):
        """
        Args:
            max_notifications: History cap, oldest evicted first (default 100)
            enabled: When False, add() is a no-op
            sound_enabled: Forwarded to the delivery hook as `play_sound`
            delivery: Side-effect hook called as delivery(notification, play_sound)
        """
        self.max_notifications = (
            max_notifications if max_notifications is not None else self.MAX_NOTIFICATIONS
        )
        if self.max_notifications <= 0:
            raise ValueError("max_notifications must be positive")

        self._notifications: List[AlertNotification] = []
        self._listeners: List[Listener] = []
        self._enabled = enabled
        self._sound_enabled = sound_enabled
        self._delivery = delivery
        self._lock = threading.RLock()

        logger.debug(
            "NotificationDispatcher initialized",
            max_notifications=self.max_notifications,
            enabled=enabled,
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # MUTATIONS
    # ═══════════════════════════════════════════════════════════════════════════

    def add(
        self, draft: NotificationDraft, now: Optional[datetime] = None
    ) -> Optional[AlertNotification]:
        """
        Record a new alert.

        Returns:
            A copy of the stored notification, or None when notifications are
            disabled
        """
        with self._lock:
            if not self._enabled:
                logger.debug("Notification dropped (disabled)", title=draft.title)
                return None

            now = resolve_now(now)
            notification = AlertNotification(
                id=f"alert_{to_epoch_ms(now)}_{random_suffix()}",
                kind=draft.kind,
                title=draft.title,
                message=draft.message,
                device_id=draft.device_id,
                timestamp=now,
            )

            self._notifications.insert(0, notification)
            del self._notifications[self.max_notifications:]

            logger.info(
                "Notification dispatched",
                notification_id=notification.id,
                kind=notification.kind.value,
                device_id=notification.device_id,
            )

            self._deliver(replace(notification))
            self._notify_listeners()
            return replace(notification)

    def acknowledge(
        self, notification_id: str, acknowledged_by: str, now: Optional[datetime] = None
    ) -> bool:
        """
        Mark a notification as acknowledged.

        Returns:
            True if the notification changed state
        """
        with self._lock:
            notification = next(
                (n for n in self._notifications if n.id == notification_id), None
            )
            if notification is None or notification.acknowledged:
                return False

            notification.acknowledged = True
            notification.acknowledged_by = acknowledged_by
            notification.acknowledged_at = resolve_now(now)
            self._notify_listeners()
            return True

    def clear_all(self) -> None:
        with self._lock:
            self._notifications = []
            self._notify_listeners()

    def clear_acknowledged(self) -> None:
        with self._lock:
            self._notifications = [n for n in self._notifications if not n.acknowledged]
            self._notify_listeners()

    # ═══════════════════════════════════════════════════════════════════════════
    # QUERIES
    # ═══════════════════════════════════════════════════════════════════════════

    def get_all(self) -> List[AlertNotification]:
        """Newest first. Both the list and its notifications are copies."""
        with self._lock:
            return self._snapshot()

    def get_unacknowledged_count(self) -> int:
        with self._lock:
            return sum(1 for n in self._notifications if not n.acknowledged)

    def get_critical_count(self) -> int:
        """Unacknowledged critical alerts"""
        with self._lock:
            return sum(
                1
                for n in self._notifications
                if n.kind == NotificationKind.CRITICAL and not n.acknowledged
            )

    # ═══════════════════════════════════════════════════════════════════════════
    # LISTENERS / SWITCHES
    # ═══════════════════════════════════════════════════════════════════════════

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener called with the full current list on every change.

        Returns:
            Unsubscribe function (safe to call more than once)
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _snapshot(self) -> List[AlertNotification]:
        return [replace(n) for n in self._notifications]

    def _notify_listeners(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._snapshot())
            except Exception:
                logger.error("Notification listener failed", exc_info=True)

    def _deliver(self, notification: AlertNotification) -> None:
        if self._delivery is None:
            return
        try:
            self._delivery(notification, self._sound_enabled)
        except Exception:
            logger.error(
                "Notification delivery failed",
                notification_id=notification.id,
                exc_info=True,
            )

    def set_enabled(self, enabled: bool) -> None:
        with self._lock:
            self._enabled = enabled

    def is_enabled(self) -> bool:
        return self._enabled

    def set_sound_enabled(self, enabled: bool) -> None:
        with self._lock:
            self._sound_enabled = enabled

    def is_sound_enabled(self) -> bool:
        return self._sound_enabled


# ═══════════════════════════════════════════════════════════════════════════════
# DRAFT BUILDERS
# ═══════════════════════════════════════════════════════════════════════════════


def create_server_down_alert(device_count: int) -> NotificationDraft:
    plural = "" if device_count == 1 else "s"
    return NotificationDraft(
        kind=NotificationKind.CRITICAL,
        title="Server Down Alert",
        message=(
            f"Server is down affecting {device_count} device{plural}. "
            "End users cannot access the service."
        ),
    )


def create_device_offline_alert(device_id: str, offline_hours: float = 2) -> NotificationDraft:
    return NotificationDraft(
        kind=NotificationKind.WARNING,
        title="Device Offline",
        message=f"Device {device_id} has been offline for more than {offline_hours:g} hours.",
        device_id=device_id,
    )


def create_battery_low_alert(device_id: str, voltage: float) -> NotificationDraft:
    return NotificationDraft(
        kind=NotificationKind.WARNING,
        title="Low Battery Alert",
        message=(
            f"Device {device_id} battery voltage is low ({voltage:.2f}V). "
            "Consider replacement."
        ),
        device_id=device_id,
    )


def create_anomaly_alert(device_id: str, kind: str, description: str) -> NotificationDraft:
    return NotificationDraft(
        kind=NotificationKind.WARNING,
        title="Anomaly Detected",
        message=f"{kind} detected on device {device_id}: {description}",
        device_id=device_id,
    )


def create_predictive_alert(device_id: str, kind: str, eta_hours: float) -> NotificationDraft:
    return NotificationDraft(
        kind=NotificationKind.INFO,
        title="Predictive Alert",
        message=(
            f"{kind} predicted for device {device_id} in approximately "
            f"{round_half_up(eta_hours)} hours."
        ),
        device_id=device_id,
    )
