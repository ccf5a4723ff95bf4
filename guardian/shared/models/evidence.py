"""Records correlated with an alert or event: location, audio, messages.

LocationPing and AudioRecording are evidence streams that grow
independently of the alert they reference. Message and Event are read-only
here and only matter as timeline sources.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from guardian.shared.utils import isoformat, parse_timestamp, utcnow


@dataclass(frozen=True)
class LocationPing:
    """A GPS sample. Append-only."""
    id: str
    user_id: str
    latitude: float
    longitude: float
    is_emergency_tracking: bool = False
    event_id: Optional[str] = None
    alert_id: Optional[str] = None
    accuracy: Optional[float] = None
    altitude: Optional[float] = None
    heading: Optional[float] = None
    speed: Optional[float] = None
    timestamp: datetime = field(default_factory=utcnow)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "LocationPing":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            latitude=row["latitude"],
            longitude=row["longitude"],
            is_emergency_tracking=bool(row.get("is_emergency_tracking", False)),
            event_id=row.get("event_id"),
            alert_id=row.get("alert_id"),
            accuracy=row.get("accuracy"),
            altitude=row.get("altitude"),
            heading=row.get("heading"),
            speed=row.get("speed"),
            timestamp=parse_timestamp(row.get("timestamp")) or utcnow(),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "event_id": self.event_id,
            "alert_id": self.alert_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "accuracy": self.accuracy,
            "altitude": self.altitude,
            "heading": self.heading,
            "speed": self.speed,
            "is_emergency_tracking": self.is_emergency_tracking,
            "timestamp": self.timestamp,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.to_row()
        data["timestamp"] = isoformat(self.timestamp)
        return data


@dataclass(frozen=True)
class AudioRecording:
    """Audio evidence, finalized after the upload completes.
    
    ``is_emergency_recording`` is derived from ``alert_id`` and cannot be
    set independently.
    """
    id: str
    user_id: str
    file_url: str
    alert_id: Optional[str] = None
    duration_seconds: Optional[float] = None
    created_at: datetime = field(default_factory=utcnow)
    deleted_at: Optional[datetime] = None

    @property
    def is_emergency_recording(self) -> bool:
        return self.alert_id is not None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "AudioRecording":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            file_url=row["file_url"],
            alert_id=row.get("alert_id"),
            duration_seconds=row.get("duration_seconds"),
            created_at=parse_timestamp(row.get("created_at")) or utcnow(),
            deleted_at=parse_timestamp(row.get("deleted_at")),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "alert_id": self.alert_id,
            "file_url": self.file_url,
            "duration_seconds": self.duration_seconds,
            "is_emergency_recording": self.is_emergency_recording,
            "created_at": self.created_at,
            "deleted_at": self.deleted_at,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.to_row()
        data["created_at"] = isoformat(self.created_at)
        data["deleted_at"] = isoformat(self.deleted_at)
        return data


def event_thread_id(event_id: str) -> str:
    """Thread id of the communication channel belonging to an event."""
    return f"event_{event_id}"


@dataclass(frozen=True)
class Message:
    """Communication-thread entry."""
    id: str
    thread_id: str
    sender_id: Optional[str]
    content: str
    type: str = "text"
    created_at: datetime = field(default_factory=utcnow)
    deleted_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Message":
        return cls(
            id=row["id"],
            thread_id=row["thread_id"],
            sender_id=row.get("sender_id"),
            content=row.get("content", ""),
            type=row.get("type", "text"),
            created_at=parse_timestamp(row.get("created_at")) or utcnow(),
            deleted_at=parse_timestamp(row.get("deleted_at")),
        )


@dataclass(frozen=True)
class Event:
    """A protected event (visit, assignment) alerts may belong to."""
    id: str
    name: str
    status: str
    created_at: datetime
    updated_at: datetime
    location: Optional[Dict[str, Any]] = None
    threat_level: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Event":
        created_at = parse_timestamp(row.get("created_at")) or utcnow()
        return cls(
            id=row["id"],
            name=row.get("name", ""),
            status=row.get("status", "planned"),
            created_at=created_at,
            updated_at=parse_timestamp(row.get("updated_at")) or created_at,
            location=row.get("location"),
            threat_level=row.get("threat_level"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "location": self.location,
            "threat_level": self.threat_level,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
