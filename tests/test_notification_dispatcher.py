"""
Tests for NotificationDispatcher and the alert draft builders
"""

from datetime import timedelta

import pytest

from fleet_insights.models.notification_models import NotificationDraft, NotificationKind
from fleet_insights.services.notification_dispatcher import (
    NotificationDispatcher,
    create_anomaly_alert,
    create_battery_low_alert,
    create_device_offline_alert,
    create_predictive_alert,
    create_server_down_alert,
)


def draft(title="Test Alert", kind=NotificationKind.WARNING, device_id="DEV001"):
    return NotificationDraft(kind=kind, title=title, message="Something happened", device_id=device_id)


class TestAddNotification:
    def test_add_stamps_id_and_timestamp(self, dispatcher, now):
        notification = dispatcher.add(draft(), now=now)

        assert notification.id.startswith("alert_1753300800000_")
        assert notification.timestamp == now
        assert notification.acknowledged is False
        assert dispatcher.get_all() == [notification]

    def test_newest_first(self, dispatcher, now):
        dispatcher.add(draft("first"), now=now)
        dispatcher.add(draft("second"), now=now + timedelta(seconds=1))
        assert [n.title for n in dispatcher.get_all()] == ["second", "first"]

    def test_history_capped_at_100(self, dispatcher, now):
        for i in range(101):
            dispatcher.add(draft(f"Alert {i}"), now=now)

        notifications = dispatcher.get_all()
        assert len(notifications) == 100
        assert notifications[0].title == "Alert 100"
        assert notifications[-1].title == "Alert 1"

    def test_custom_cap(self, now):
        dispatcher = NotificationDispatcher(max_notifications=3)
        for i in range(5):
            dispatcher.add(draft(f"Alert {i}"), now=now)
        assert [n.title for n in dispatcher.get_all()] == ["Alert 4", "Alert 3", "Alert 2"]

    def test_identical_drafts_not_deduplicated(self, dispatcher, now):
        first = dispatcher.add(draft(), now=now)
        second = dispatcher.add(draft(), now=now)
        assert first.id != second.id
        assert len(dispatcher.get_all()) == 2

    def test_disabled_dispatcher_drops_alerts(self, dispatcher, now):
        dispatcher.set_enabled(False)
        assert dispatcher.is_enabled() is False
        assert dispatcher.add(draft(), now=now) is None
        assert dispatcher.get_all() == []

    def test_get_all_returns_copy(self, dispatcher, now):
        dispatcher.add(draft(), now=now)
        dispatcher.get_all().clear()
        assert len(dispatcher.get_all()) == 1

    def test_invalid_cap_rejected(self):
        with pytest.raises(ValueError):
            NotificationDispatcher(max_notifications=0)


class TestAcknowledge:
    def test_acknowledge_marks_notification(self, dispatcher, now):
        notification = dispatcher.add(draft(), now=now)
        later = now + timedelta(minutes=3)

        assert dispatcher.acknowledge(notification.id, "operator@fleet", now=later) is True

        stored = dispatcher.get_all()[0]
        assert stored.acknowledged is True
        assert stored.acknowledged_by == "operator@fleet"
        assert stored.acknowledged_at == later

    def test_returned_notifications_are_copies(self, dispatcher, now):
        returned = dispatcher.add(draft(), now=now)
        returned.acknowledged = True
        dispatcher.get_all()[0].acknowledged = True

        assert dispatcher.get_unacknowledged_count() == 1
        assert dispatcher.acknowledge(returned.id, "operator", now=now) is True

    def test_acknowledge_is_idempotent(self, dispatcher, now):
        notification = dispatcher.add(draft(), now=now)
        dispatcher.acknowledge(notification.id, "first", now=now)

        assert dispatcher.acknowledge(notification.id, "second", now=now) is False
        assert dispatcher.get_all()[0].acknowledged_by == "first"

    def test_unknown_id_is_ignored(self, dispatcher, now):
        dispatcher.add(draft(), now=now)
        calls = []
        dispatcher.subscribe(calls.append)

        assert dispatcher.acknowledge("alert_missing", "operator", now=now) is False
        assert calls == []
        assert dispatcher.get_unacknowledged_count() == 1

    def test_counts(self, dispatcher, now):
        critical = dispatcher.add(draft(kind=NotificationKind.CRITICAL), now=now)
        dispatcher.add(draft(kind=NotificationKind.CRITICAL), now=now)
        dispatcher.add(draft(kind=NotificationKind.INFO), now=now)

        assert dispatcher.get_unacknowledged_count() == 3
        assert dispatcher.get_critical_count() == 2

        dispatcher.acknowledge(critical.id, "operator", now=now)
        assert dispatcher.get_unacknowledged_count() == 2
        assert dispatcher.get_critical_count() == 1

    def test_clear_acknowledged_keeps_open_alerts(self, dispatcher, now):
        acked = dispatcher.add(draft("acked"), now=now)
        dispatcher.add(draft("open"), now=now)
        dispatcher.acknowledge(acked.id, "operator", now=now)

        dispatcher.clear_acknowledged()
        assert [n.title for n in dispatcher.get_all()] == ["open"]

    def test_clear_all(self, dispatcher, now):
        dispatcher.add(draft(), now=now)
        dispatcher.clear_all()
        assert dispatcher.get_all() == []


class TestListeners:
    def test_listener_receives_full_list_on_every_change(self, dispatcher, now):
        received = []
        dispatcher.subscribe(received.append)

        first = dispatcher.add(draft("one"), now=now)
        dispatcher.add(draft("two"), now=now)
        dispatcher.acknowledge(first.id, "operator", now=now)

        assert [len(batch) for batch in received] == [1, 2, 2]
        assert received[-1][-1].acknowledged is True

    def test_unsubscribe(self, dispatcher, now):
        received = []
        unsubscribe = dispatcher.subscribe(received.append)
        unsubscribe()
        unsubscribe()

        dispatcher.add(draft(), now=now)
        assert received == []

    def test_failing_listener_does_not_block_others(self, dispatcher, now):
        def broken(_):
            raise RuntimeError("listener failure")

        received = []
        dispatcher.subscribe(broken)
        dispatcher.subscribe(received.append)

        assert dispatcher.add(draft(), now=now) is not None
        assert len(received) == 1

    def test_listener_may_read_dispatcher(self, dispatcher, now):
        counts = []
        dispatcher.subscribe(lambda _: counts.append(dispatcher.get_unacknowledged_count()))
        dispatcher.add(draft(), now=now)
        assert counts == [1]

    def test_listener_list_is_a_copy(self, dispatcher, now):
        dispatcher.subscribe(lambda notifications: notifications.clear())
        dispatcher.add(draft(), now=now)
        assert len(dispatcher.get_all()) == 1

    def test_listener_cannot_acknowledge_by_mutation(self, dispatcher, now):
        def tamper(notifications):
            for notification in notifications:
                notification.acknowledged = True

        dispatcher.subscribe(tamper)
        dispatcher.add(draft(), now=now)

        assert dispatcher.get_unacknowledged_count() == 1
        assert dispatcher.get_all()[0].acknowledged is False


class TestDelivery:
    def test_delivery_hook_gets_sound_flag(self, now):
        delivered = []
        dispatcher = NotificationDispatcher(
            delivery=lambda n, play_sound: delivered.append((n.title, play_sound))
        )
        dispatcher.add(draft("loud"), now=now)
        dispatcher.set_sound_enabled(False)
        dispatcher.add(draft("quiet"), now=now)

        assert delivered == [("loud", True), ("quiet", False)]
        assert dispatcher.is_sound_enabled() is False

    def test_failing_delivery_still_stores_alert(self, now):
        def broken(notification, play_sound):
            raise OSError("no audio device")

        dispatcher = NotificationDispatcher(delivery=broken)
        assert dispatcher.add(draft(), now=now) is not None
        assert len(dispatcher.get_all()) == 1


class TestDraftBuilders:
    def test_server_down_alert(self):
        alert = create_server_down_alert(3)
        assert alert.kind == NotificationKind.CRITICAL
        assert alert.title == "Server Down Alert"
        assert "affecting 3 devices" in alert.message
        assert "affecting 1 device." in create_server_down_alert(1).message

    def test_device_offline_alert(self):
        alert = create_device_offline_alert("DEV001")
        assert alert.kind == NotificationKind.WARNING
        assert alert.device_id == "DEV001"
        assert "more than 2 hours" in alert.message

    def test_battery_low_alert(self):
        alert = create_battery_low_alert("DEV001", 11.234)
        assert alert.title == "Low Battery Alert"
        assert "(11.23V)" in alert.message

    def test_anomaly_alert(self):
        alert = create_anomaly_alert("DEV001", "voltage_drop", "Low voltage detected: 11.30V")
        assert alert.title == "Anomaly Detected"
        assert alert.message.startswith("voltage_drop detected on device DEV001")

    def test_predictive_alert_rounds_eta(self):
        alert = create_predictive_alert("DEV001", "battery_failure", 3.5)
        assert alert.kind == NotificationKind.INFO
        assert "approximately 4 hours" in alert.message
