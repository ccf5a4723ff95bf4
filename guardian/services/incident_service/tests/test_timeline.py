"""Tests for timeline reconstruction."""
from datetime import datetime, timedelta, timezone

import pytest

from guardian.shared.database.records import (
    AlertRepository,
    AudioRepository,
    EventRepository,
    LocationRepository,
    MessageRepository,
)
from guardian.shared.models import (
    Alert,
    AlertLevel,
    AlertStatus,
    AudioRecording,
    Event,
    LocationPing,
    Message,
    TriggerSource,
    event_thread_id,
)
from guardian.services.incident_service import TimelineEntry, build_timeline, merge_streams

T0 = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def at(seconds):
    return T0 + timedelta(seconds=seconds)


@pytest.fixture
def sources(container):
    return container.reports.sources


def seed_alert(store, resolved_after=300):
    alert = Alert(
        id="alert-1",
        user_id="official-1",
        level=AlertLevel.HIGH,
        trigger_source=TriggerSource.MANUAL,
        status=AlertStatus.RESOLVED,
        created_at=at(0),
        resolved_at=at(resolved_after),
        resolved_by="admin-1",
    )
    # Evidence first, alert last: store order must not matter
    AudioRepository(store).add(AudioRecording(
        id="audio-1", user_id="official-1", file_url="http://blobs.test/a.webm",
        alert_id="alert-1", duration_seconds=20, created_at=at(10),
    ))
    LocationRepository(store).add(LocationPing(
        id="ping-1", user_id="official-1", latitude=40.7128, longitude=-74.006,
        alert_id="alert-1", is_emergency_tracking=True, timestamp=at(5),
    ))
    AlertRepository(store).add(alert)
    return alert


def seed_event(store):
    EventRepository(store).add(Event(
        id="event-1", name="Town hall", status="active",
        created_at=at(-3600), updated_at=at(-60),
    ))
    MessageRepository(store).add(Message(
        id="msg-1", thread_id=event_thread_id("event-1"), sender_id="team-1",
        content="Perimeter secured", created_at=at(7),
    ))


class TestBuildTimeline:

    def test_alert_timeline_is_chronological(self, store, sources):
        seed_alert(store)

        timeline = build_timeline(sources, alert_id="alert-1")

        assert [e.description for e in timeline.entries] == [
            "HIGH alert triggered",
            "Location update",
            "Audio recording",
            "Alert resolved",
        ]
        times = [e.time for e in timeline.entries]
        assert times == sorted(times)

    def test_unresolved_alert_has_no_resolution_entry(self, container, sources):
        alert = container.lifecycle.create_alert("official-1", "low")

        timeline = build_timeline(sources, alert_id=alert.id)

        assert [e.category for e in timeline.entries] == ["alert"]

    def test_alert_and_event_interleave(self, store, sources):
        seed_alert(store)
        seed_event(store)

        timeline = build_timeline(sources, alert_id="alert-1", event_id="event-1")

        assert [e.description for e in timeline.entries] == [
            "Event created: Town hall",
            "Event activated",
            "HIGH alert triggered",
            "Location update",
            "Message sent",
            "Audio recording",
            "Alert resolved",
        ]

    def test_no_ids_gives_empty_timeline(self, sources):
        assert len(build_timeline(sources)) == 0

    def test_unknown_ids_give_empty_timeline(self, sources):
        assert build_timeline(sources, alert_id="nope", event_id="nope").to_list() == []

    def test_identical_state_identical_json(self, store, sources):
        seed_alert(store)
        seed_event(store)

        first = build_timeline(sources, alert_id="alert-1", event_id="event-1").to_json()
        second = build_timeline(sources, alert_id="alert-1", event_id="event-1").to_json()

        assert first == second

    def test_entry_shape(self, store, sources):
        seed_alert(store)

        entry = build_timeline(sources, alert_id="alert-1").to_list()[0]

        assert entry == {
            "time": "2024-06-01T12:00:00+00:00",
            "category": "alert",
            "description": "HIGH alert triggered",
            "payload": {
                "level": "high",
                "message": None,
                "trigger_source": "manual",
                "is_silent_duress": False,
            },
        }


class TestMergeStreams:

    def test_ties_keep_stream_order(self):
        alert_stream = [
            TimelineEntry(at(5), "location", "Location update"),
            TimelineEntry(at(5), "audio", "Audio recording"),
        ]
        event_stream = [TimelineEntry(at(5), "message", "Message sent")]

        merged = merge_streams(alert_stream, event_stream)

        assert [e.category for e in merged] == ["location", "audio", "message"]

    def test_sorts_across_streams(self):
        merged = merge_streams(
            [TimelineEntry(at(3), "alert", "b")],
            [TimelineEntry(at(1), "event", "a"), TimelineEntry(at(9), "message", "c")],
        )

        assert [e.description for e in merged] == ["a", "b", "c"]
