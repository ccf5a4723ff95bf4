"""Tests for NotificationFanout.

Push rows must be durable before notify() returns; the SMS leg is
best-effort and one failed recipient never stops the others.
"""
import pytest
import requests
from unittest.mock import MagicMock

from guardian.shared.database import InMemoryStore
from guardian.shared.database.records import NotificationRepository, ProfileRepository
from guardian.shared.models import Alert, AlertLevel, GeoPoint, Profile, Role, TriggerSource
from guardian.services.notification_service.config import FanoutConfig
from guardian.services.notification_service.fanout import (
    NotificationFanout,
    compose_payload,
    compose_sms,
)


@pytest.fixture
def store():
    store = InMemoryStore()
    profiles = ProfileRepository(store)
    profiles.add(Profile(id="official-1", role=Role.OFFICIAL, full_name="Dana Reyes"))
    profiles.add(Profile(id="admin-1", role=Role.SECURITY_ADMIN, phone="15550001"))
    profiles.add(Profile(id="team-1", role=Role.SECURITY_TEAM, phone="15550002"))
    profiles.add(Profile(id="team-2", role=Role.SECURITY_TEAM))
    profiles.add(Profile(id="team-off", role=Role.SECURITY_TEAM, phone="15550003", is_active=False))
    return store


def make_alert(level=AlertLevel.CRITICAL, source=TriggerSource.MANUAL, location=None):
    return Alert(
        id="alert-1",
        user_id="official-1",
        level=level,
        trigger_source=source,
        location=location,
    )


def make_fanout(store, transport=None, **config):
    return NotificationFanout(
        profiles=ProfileRepository(store),
        notifications=NotificationRepository(store),
        sms_transport=transport,
        config=FanoutConfig(**config),
    )


class TestPushRecords:

    def test_one_record_per_active_responder(self, store):
        fanout = make_fanout(store)

        result = fanout.notify(make_alert())

        records = NotificationRepository(store).for_alert("alert-1")
        assert result.recipients == 3
        assert result.push_recorded == 3
        assert sorted(r.recipient_id for r in records) == ["admin-1", "team-1", "team-2"]

    def test_record_content(self, store):
        fanout = make_fanout(store)

        fanout.notify(make_alert(level=AlertLevel.HIGH))

        record = NotificationRepository(store).for_alert("alert-1")[0]
        assert record.title == "Emergency Alert: HIGH"
        assert record.body == "Dana Reyes has triggered a high alert"
        assert record.channel_flags == ["push"]
        assert record.payload == {
            "alert_id": "alert-1",
            "level": "high",
            "trigger_source": "manual",
        }

    def test_unknown_subject_named_user(self, store):
        fanout = make_fanout(store)
        alert = make_alert()
        alert.user_id = "missing"

        fanout.notify(alert)

        record = NotificationRepository(store).for_alert("alert-1")[0]
        assert record.body.startswith("User has triggered")

    def test_insert_failure_is_reported_not_raised(self, store):
        notifications = MagicMock()
        notifications.add.side_effect = RuntimeError("db down")
        fanout = NotificationFanout(
            profiles=ProfileRepository(store),
            notifications=notifications,
        )

        result = fanout.notify(make_alert())

        assert result.push_failed is True
        assert result.push_recorded == 0

    def test_roster_failure_is_reported_not_raised(self):
        profiles = MagicMock()
        profiles.active_responders.side_effect = RuntimeError("db down")
        fanout = NotificationFanout(profiles=profiles, notifications=MagicMock())

        result = fanout.notify(make_alert())

        assert result.push_failed is True
        assert result.recipients == 0


class TestSilence:

    def test_silent_payload_carries_marker(self, store):
        fanout = make_fanout(store)
        alert = make_alert(source=TriggerSource.DURESS_PASSWORD)

        fanout.notify(alert, silent=True)

        records = NotificationRepository(store).for_alert("alert-1")
        assert all(r.is_silent for r in records)

    def test_silent_differs_only_by_marker(self):
        manual = make_alert(source=TriggerSource.MANUAL)
        duress = make_alert(source=TriggerSource.DURESS_PASSWORD)

        loud = compose_payload(manual, silent=False)
        quiet = compose_payload(duress, silent=True)

        assert quiet.pop("silent") is True
        assert quiet["level"] == loud["level"] == "critical"
        assert compose_sms(manual, "Dana") == compose_sms(duress, "Dana")


class TestSms:

    def test_sms_sent_to_responders_with_phone(self, store):
        transport = MagicMock()
        transport.send.return_value = "SM123"
        fanout = make_fanout(store, transport)

        result = fanout.notify(make_alert(location=GeoPoint(40.7128, -74.006)))

        assert result.sms_enabled is True
        assert result.sms_sent == 2
        sent_to = sorted(call.args[0] for call in transport.send.call_args_list)
        assert sent_to == ["15550001", "15550002"]
        body = transport.send.call_args_list[0].args[1]
        assert body == (
            "EMERGENCY ALERT: Dana Reyes - CRITICAL alert triggered. "
            "Location: 40.7128, -74.006"
        )

    def test_sms_location_unknown(self, store):
        assert compose_sms(make_alert(), "Dana").endswith("Location: Unknown")

    def test_one_failure_does_not_stop_others(self, store):
        transport = MagicMock()

        def send(to, body):
            if to == "15550001":
                raise RuntimeError("provider rejected")
            return "SM456"

        transport.send.side_effect = send
        fanout = make_fanout(store, transport)

        result = fanout.notify(make_alert())

        assert result.sms_sent == 1
        assert result.sms_failed == 1
        assert result.push_recorded == 3

    def test_timeout_is_retried(self, store):
        transport = MagicMock()
        transport.send.side_effect = [requests.Timeout(), "SM789", "SM790"]
        fanout = make_fanout(store, transport, sms_max_workers=1, sms_max_attempts=2)

        result = fanout.notify(make_alert())

        assert result.sms_sent == 2
        assert transport.send.call_count == 3

    def test_timeouts_exhaust_attempts(self, store):
        transport = MagicMock()
        transport.send.side_effect = requests.Timeout()
        fanout = make_fanout(store, transport, sms_max_attempts=2)

        result = fanout.notify(make_alert())

        assert result.sms_failed == 2
        assert transport.send.call_count == 4

    def test_no_transport_skips_sms(self, store):
        fanout = make_fanout(store)

        result = fanout.notify(make_alert())

        assert result.sms_enabled is False
        assert result.sms_sent == 0
