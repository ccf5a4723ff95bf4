"""Tests for AlertLifecycleManager.

Covers the state machine, authorization of resolve/cancel, the duress
path and audio evidence attachment.
"""
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from guardian.shared.database.records import (
    AlertRepository,
    AudioRepository,
    LocationRepository,
    NotificationRepository,
)
from guardian.shared.database.store import eq
from guardian.shared.errors import Forbidden, NotFound, Unauthorized, ValidationError
from guardian.shared.models import AlertLevel, AlertStatus, TriggerSource


@pytest.fixture
def lifecycle(container):
    return container.lifecycle


class TestCreateAlert:

    def test_scenario_high_alert_with_location(self, store, lifecycle):
        alert = lifecycle.create_alert(
            "official-1",
            "high",
            location={"lat": 40.7128, "lng": -74.0060},
        )

        assert alert.level is AlertLevel.HIGH
        assert alert.status is AlertStatus.ACTIVE
        assert alert.trigger_source is TriggerSource.MANUAL

        pings = LocationRepository(store).for_alert(alert.id)
        assert len(pings) == 1
        assert pings[0].is_emergency_tracking is True
        assert (pings[0].latitude, pings[0].longitude) == (40.7128, -74.0060)

        recipients = {n.recipient_id for n in NotificationRepository(store).for_alert(alert.id)}
        assert recipients == {"admin-1", "team-1"}

    def test_no_location_no_ping(self, store, lifecycle):
        alert = lifecycle.create_alert("official-1", "low")
        assert LocationRepository(store).for_alert(alert.id) == []

    @pytest.mark.parametrize("level", [None, "", "severe", "CRITICAL"])
    def test_invalid_level_writes_nothing(self, store, lifecycle, level):
        with pytest.raises(ValidationError):
            lifecycle.create_alert("official-1", level)
        assert store.query("alerts") == []
        assert store.query("notifications") == []

    def test_malformed_location_writes_nothing(self, store, lifecycle):
        with pytest.raises(ValidationError):
            lifecycle.create_alert("official-1", "high", location={"lat": "north"})
        assert store.query("alerts") == []

    def test_notification_failure_does_not_fail_alert(self, store, container):
        lifecycle = container.lifecycle
        lifecycle.fanout.notifications = MagicMock()
        lifecycle.fanout.notifications.add.side_effect = RuntimeError("insert failed")

        alert = lifecycle.create_alert("official-1", "critical")

        assert AlertRepository(store).find_by_id(alert.id) is not None

    def test_primary_write_failure_surfaces(self, lifecycle):
        lifecycle.alerts = MagicMock()
        lifecycle.alerts.add.side_effect = RuntimeError("db down")

        with pytest.raises(RuntimeError):
            lifecycle.create_alert("official-1", "critical")

    def test_multiple_active_alerts_are_supported(self, store, lifecycle):
        first = lifecycle.create_alert("official-1", "low")
        store.update("alerts", [eq("id", first.id)], {"created_at": first.created_at - timedelta(minutes=5)})
        second = lifecycle.create_alert("official-1", "high")

        assert lifecycle.fetch_active("official-1").id == second.id
        active_ids = {a.id for a in lifecycle.alerts.list_active_for_user("official-1")}
        assert active_ids == {first.id, second.id}

    def test_fetch_active_none(self, lifecycle):
        assert lifecycle.fetch_active("official-2") is None


class TestResolveAndCancel:

    def test_owner_resolves(self, lifecycle, official):
        alert = lifecycle.create_alert("official-1", "high")

        resolved = lifecycle.resolve(official, alert.id)

        assert resolved.status is AlertStatus.RESOLVED
        assert resolved.resolved_by == "official-1"
        assert resolved.resolved_at is not None

    def test_other_official_forbidden(self, lifecycle, other_official):
        alert = lifecycle.create_alert("official-1", "high")

        with pytest.raises(Forbidden):
            lifecycle.resolve(other_official, alert.id)
        assert lifecycle.alerts.get_by_id(alert.id).status is AlertStatus.ACTIVE

    def test_security_admin_resolves_any(self, lifecycle, security_admin):
        alert = lifecycle.create_alert("official-1", "high")

        resolved = lifecycle.resolve(security_admin, alert.id)

        assert resolved.status is AlertStatus.RESOLVED
        assert resolved.resolved_by == "admin-1"

    def test_missing_alert(self, lifecycle, security_admin):
        with pytest.raises(NotFound):
            lifecycle.resolve(security_admin, "no-such-alert")

    def test_cancel_leaves_resolved_at_unset(self, lifecycle, official):
        alert = lifecycle.create_alert("official-1", "medium")

        cancelled = lifecycle.cancel(official, alert.id)

        assert cancelled.status is AlertStatus.CANCELLED
        assert cancelled.resolved_at is None

    def test_terminal_alert_never_reopens(self, lifecycle, official, security_admin):
        alert = lifecycle.create_alert("official-1", "medium")
        lifecycle.cancel(official, alert.id)

        with pytest.raises(ValidationError):
            lifecycle.resolve(security_admin, alert.id)
        with pytest.raises(ValidationError):
            lifecycle.cancel(official, alert.id)

        stored = lifecycle.alerts.get_by_id(alert.id)
        assert stored.status is AlertStatus.CANCELLED
        assert stored.resolved_at is None

    def test_resolved_at_set_only_when_resolved(self, lifecycle, official):
        alerts = [lifecycle.create_alert("official-1", "low") for _ in range(3)]
        lifecycle.resolve(official, alerts[0].id)
        lifecycle.cancel(official, alerts[1].id)

        for alert in alerts:
            stored = lifecycle.alerts.get_by_id(alert.id)
            assert (stored.resolved_at is not None) == (stored.status is AlertStatus.RESOLVED)


class TestDuressAlert:

    @pytest.fixture
    def configured(self, container):
        container.decoy.setup("official-1", "blue-umbrella")
        return container

    def test_match_raises_silent_critical_alert(self, store, configured):
        alert = configured.lifecycle.create_duress_alert(
            "official-1", "blue-umbrella", location={"lat": 1.0, "lng": 2.0},
        )

        assert alert.level is AlertLevel.CRITICAL
        assert alert.trigger_source is TriggerSource.DURESS_PASSWORD
        assert alert.is_silent_duress is True

        notifications = NotificationRepository(store).for_alert(alert.id)
        assert notifications
        assert all(n.payload["silent"] is True for n in notifications)
        assert len(LocationRepository(store).for_alert(alert.id)) == 1

    def test_silent_severity_matches_manual_critical(self, store, configured):
        duress = configured.lifecycle.create_duress_alert("official-1", "blue-umbrella")
        manual = configured.lifecycle.create_alert("official-1", "critical")

        silent_note = NotificationRepository(store).for_alert(duress.id)[0]
        manual_note = NotificationRepository(store).for_alert(manual.id)[0]

        assert silent_note.title == manual_note.title
        assert silent_note.body == manual_note.body
        assert silent_note.payload["level"] == manual_note.payload["level"]
        assert "silent" not in manual_note.payload

    def test_no_ping_when_silent_alerts_disabled(self, store, configured):
        configured.decoy.update("official-1", {"silent_alert_enabled": False})

        alert = configured.lifecycle.create_duress_alert(
            "official-1", "blue-umbrella", location={"lat": 1.0, "lng": 2.0},
        )

        assert LocationRepository(store).for_alert(alert.id) == []

    def test_wrong_password(self, store, configured):
        with pytest.raises(Unauthorized) as wrong:
            configured.lifecycle.create_duress_alert("official-1", "red-umbrella")
        assert store.query("alerts") == []
        assert wrong.value.message == "Invalid duress credentials"

    def test_unconfigured_looks_like_wrong_password(self, configured):
        with pytest.raises(Unauthorized) as unconfigured:
            configured.lifecycle.create_duress_alert("official-2", "blue-umbrella")
        with pytest.raises(Unauthorized) as wrong:
            configured.lifecycle.create_duress_alert("official-1", "red-umbrella")

        assert unconfigured.value.message == wrong.value.message
        assert unconfigured.value.status_code == wrong.value.status_code

    def test_disabled_looks_like_wrong_password(self, configured):
        configured.decoy.update("official-1", {"enabled": False})

        with pytest.raises(Unauthorized):
            configured.lifecycle.create_duress_alert("official-1", "blue-umbrella")

    def test_password_required(self, configured):
        with pytest.raises(ValidationError):
            configured.lifecycle.create_duress_alert("official-1", "")


class TestAudio:

    def test_reserve_falls_back_to_active_alert(self, lifecycle):
        alert = lifecycle.create_alert("official-1", "high")

        slot = lifecycle.reserve_audio_upload("official-1")

        assert slot.alert_id == alert.id
        assert slot.handle.file_path.startswith(f"official-1/{alert.id}/")
        assert slot.handle.file_path.endswith(".webm")

    def test_reserve_without_active_alert(self, lifecycle):
        with pytest.raises(NotFound):
            lifecycle.reserve_audio_upload("official-2")

    def test_attach_links_alert(self, store, lifecycle):
        alert = lifecycle.create_alert("official-1", "high")

        recording = lifecycle.attach_audio("official-1", f"official-1/{alert.id}/1.webm", alert.id, 12.5)

        assert recording.is_emergency_recording
        assert recording.file_url == f"http://blobs.test/audio-recordings/official-1/{alert.id}/1.webm"
        assert lifecycle.alerts.get_by_id(alert.id).audio_recording_url == recording.file_url

    def test_stale_alert_reference_keeps_audio(self, store, lifecycle):
        recording = lifecycle.attach_audio("official-1", "official-1/gone/1.webm", "gone")

        stored = AudioRepository(store).for_alert("gone")
        assert [r.id for r in stored] == [recording.id]

    def test_alert_update_failure_keeps_audio(self, store, lifecycle):
        lifecycle.alerts = MagicMock()
        lifecycle.alerts.update_fields.side_effect = RuntimeError("db down")

        recording = lifecycle.attach_audio("official-1", "official-1/a/1.webm", "a")

        assert AudioRepository(store).find_by_id(recording.id) is not None

    def test_file_path_required(self, lifecycle):
        with pytest.raises(ValidationError):
            lifecycle.attach_audio("official-1", "")

    @pytest.mark.parametrize("duration", ["12", True])
    def test_non_numeric_duration_writes_nothing(self, store, lifecycle, duration):
        alert = lifecycle.create_alert("official-1", "high")

        with pytest.raises(ValidationError, match="Duration must be a number"):
            lifecycle.attach_audio("official-1", f"official-1/{alert.id}/1.webm", alert.id, duration)

        assert store.query("audio_recordings") == []
        assert lifecycle.alerts.get_by_id(alert.id).audio_recording_url is None
