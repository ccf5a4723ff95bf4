"""Durable notification records and incident reports."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from guardian.shared.utils import isoformat, parse_timestamp, utcnow


@dataclass(frozen=True)
class Notification:
    """One push record for one responder.
    
    Written before the triggering request reports success.
    """
    id: str
    recipient_id: str
    alert_id: str
    title: str
    body: str
    payload: Dict[str, Any]
    channel_flags: List[str] = field(default_factory=lambda: ["push"])
    type: str = "emergency"
    created_at: datetime = field(default_factory=utcnow)

    @property
    def is_silent(self) -> bool:
        return self.payload.get("silent") is True

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Notification":
        return cls(
            id=row["id"],
            recipient_id=row["user_id"],
            alert_id=row["alert_id"],
            title=row["title"],
            body=row["body"],
            payload=dict(row.get("data") or {}),
            channel_flags=list(row.get("sent_via") or ["push"]),
            type=row.get("type", "emergency"),
            created_at=parse_timestamp(row.get("created_at")) or utcnow(),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.recipient_id,
            "alert_id": self.alert_id,
            "type": self.type,
            "title": self.title,
            "body": self.body,
            "data": self.payload,
            "sent_via": self.channel_flags,
            "created_at": self.created_at,
        }


@dataclass
class IncidentReport:
    """After-action report; the timeline is embedded, not live."""
    id: str
    user_id: str
    title: str
    description: str
    alert_id: Optional[str] = None
    event_id: Optional[str] = None
    location: Optional[Dict[str, Any]] = None
    attachments: List[str] = field(default_factory=list)
    audio_files: List[str] = field(default_factory=list)
    timeline: Optional[List[Dict[str, Any]]] = None
    status: str = "draft"
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    deleted_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "IncidentReport":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            description=row["description"],
            alert_id=row.get("alert_id"),
            event_id=row.get("event_id"),
            location=row.get("location"),
            attachments=list(row.get("attachments") or []),
            audio_files=list(row.get("audio_files") or []),
            timeline=row.get("timeline"),
            status=row.get("status", "draft"),
            created_at=parse_timestamp(row.get("created_at")) or utcnow(),
            updated_at=parse_timestamp(row.get("updated_at")) or utcnow(),
            deleted_at=parse_timestamp(row.get("deleted_at")),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "alert_id": self.alert_id,
            "event_id": self.event_id,
            "title": self.title,
            "description": self.description,
            "location": self.location,
            "attachments": self.attachments,
            "audio_files": self.audio_files,
            "timeline": self.timeline,
            "status": self.status,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "deleted_at": self.deleted_at,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.to_row()
        data["created_at"] = isoformat(self.created_at)
        data["updated_at"] = isoformat(self.updated_at)
        data["deleted_at"] = isoformat(self.deleted_at)
        return data
