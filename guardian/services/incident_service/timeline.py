"""Timeline Reconstructor.

Merges every record that references an alert or an event into one
chronological incident narrative:

    alert created, alert resolved, location pings, audio recordings
    (alert-derived), then event created, event transition, messages
    (event-derived)

The concatenation is stable-sorted by time, so entries with identical
timestamps keep that order. Nothing is cached; each call reads the
current store state, and identical state yields identical output.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from guardian.shared.database.records import (
    AlertRepository,
    AudioRepository,
    EventRepository,
    LocationRepository,
    MessageRepository,
)
from guardian.shared.models import event_thread_id
from guardian.shared.utils import isoformat

logger = logging.getLogger(__name__)

# Event statuses that get a transition entry
_EVENT_TRANSITIONS = {
    "active": "Event activated",
    "completed": "Event completed",
}


@dataclass(frozen=True)
class TimelineEntry:
    time: datetime
    category: str
    description: str
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time": isoformat(self.time),
            "category": self.category,
            "description": self.description,
            "payload": self.payload,
        }


@dataclass(frozen=True)
class IncidentTimeline:
    """Ordered, non-decreasing by ``time``."""
    entries: Tuple[TimelineEntry, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    def to_list(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self.entries]

    def to_json(self) -> str:
        return json.dumps(self.to_list(), sort_keys=True, default=str)


def merge_streams(*streams: Iterable[TimelineEntry]) -> List[TimelineEntry]:
    """Concatenate entry streams and stable-sort them by time.
    
    Streams are taken in argument order, so for equal timestamps an entry
    from an earlier stream (or earlier in its stream) stays first.
    """
    merged: List[TimelineEntry] = []
    for stream in streams:
        merged.extend(stream)
    return sorted(merged, key=lambda entry: entry.time)


@dataclass
class TimelineSources:
    """Read-only repositories the reconstructor draws from."""
    alerts: AlertRepository
    locations: LocationRepository
    audio: AudioRepository
    events: EventRepository
    messages: MessageRepository


def build_timeline(
    sources: TimelineSources,
    alert_id: Optional[str] = None,
    event_id: Optional[str] = None,
) -> IncidentTimeline:
    """Reconstruct the timeline of an alert, an event, or both.
    
    Args:
        sources: Repositories to read from
        alert_id: Alert whose lifecycle, locations and audio to include
        event_id: Event whose lifecycle and messages to include
        
    Returns:
        IncidentTimeline, empty when neither id is given
    """
    alert_entries = _alert_entries(sources, alert_id) if alert_id else []
    event_entries = _event_entries(sources, event_id) if event_id else []

    timeline = IncidentTimeline(entries=tuple(merge_streams(alert_entries, event_entries)))

    logger.info(
        "TIMELINE_BUILT",
        extra={
            "alert_id": alert_id,
            "event_id": event_id,
            "entry_count": len(timeline),
        }
    )
    return timeline


def _alert_entries(sources: TimelineSources, alert_id: str) -> List[TimelineEntry]:
    entries: List[TimelineEntry] = []

    alert = sources.alerts.find_by_id(alert_id)
    if alert is not None:
        entries.append(TimelineEntry(
            time=alert.created_at,
            category="alert",
            description=f"{alert.level.value.upper()} alert triggered",
            payload={
                "level": alert.level.value,
                "message": alert.message,
                "trigger_source": alert.trigger_source.value,
                "is_silent_duress": alert.is_silent_duress,
            },
        ))
        if alert.resolved_at is not None:
            entries.append(TimelineEntry(
                time=alert.resolved_at,
                category="alert",
                description="Alert resolved",
                payload={"resolved_by": alert.resolved_by},
            ))

    for ping in sources.locations.for_alert(alert_id):
        entries.append(TimelineEntry(
            time=ping.timestamp,
            category="location",
            description="Location update",
            payload={
                "latitude": ping.latitude,
                "longitude": ping.longitude,
                "accuracy": ping.accuracy,
            },
        ))

    # Store order; the final merge sorts them
    for recording in sources.audio.for_alert(alert_id):
        entries.append(TimelineEntry(
            time=recording.created_at,
            category="audio",
            description="Audio recording",
            payload={
                "file_url": recording.file_url,
                "duration_seconds": recording.duration_seconds,
            },
        ))

    return entries


def _event_entries(sources: TimelineSources, event_id: str) -> List[TimelineEntry]:
    entries: List[TimelineEntry] = []

    event = sources.events.find_by_id(event_id)
    if event is not None:
        entries.append(TimelineEntry(
            time=event.created_at,
            category="event",
            description=f"Event created: {event.name}",
            payload={
                "name": event.name,
                "location": event.location,
                "threat_level": event.threat_level,
            },
        ))
        transition = _EVENT_TRANSITIONS.get(event.status)
        if transition is not None:
            entries.append(TimelineEntry(
                time=event.updated_at,
                category="event",
                description=transition,
            ))

    for message in sources.messages.for_thread(event_thread_id(event_id)):
        entries.append(TimelineEntry(
            time=message.created_at,
            category="message",
            description="Message sent",
            payload={"content": message.content, "type": message.type},
        ))

    return entries
