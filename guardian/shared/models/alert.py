"""Alert domain model: levels, lifecycle states and trigger sources.

An Alert is created by exactly one trigger source, starts ``active`` and
ends in one of the terminal states. Nothing ever returns a terminal alert
to ``active``, and alerts are never physically deleted.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from guardian.shared.errors import ValidationError
from guardian.shared.utils import isoformat, parse_timestamp, utcnow


class AlertLevel(Enum):
    """Severity signalled to responders."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @classmethod
    def parse(cls, value: Any) -> "AlertLevel":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(
                f"Alert level must be one of: {', '.join(l.value for l in cls)}"
            )


class AlertStatus(Enum):
    """State machine for the alert lifecycle."""
    ACTIVE = "active"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    def can_transition_to(self, target: "AlertStatus") -> bool:
        return target in _TRANSITIONS[self]


TERMINAL_STATUSES: FrozenSet[AlertStatus] = frozenset({
    AlertStatus.RESOLVED,
    AlertStatus.CANCELLED,
})

_TRANSITIONS = {
    AlertStatus.ACTIVE: frozenset({AlertStatus.RESOLVED, AlertStatus.CANCELLED}),
    AlertStatus.RESOLVED: frozenset(),
    AlertStatus.CANCELLED: frozenset(),
}


class TriggerSource(Enum):
    """Where an alert came from."""
    MANUAL = "manual"
    DURESS_PASSWORD = "duress_password"
    WEARABLE_BUTTON = "wearable_button"
    WEARABLE_HEARTRATE = "wearable_heartrate"
    WEARABLE_GESTURE = "wearable_gesture"


@dataclass(frozen=True)
class GeoPoint:
    """A coordinate attached to an alert or request."""
    lat: float
    lng: float
    accuracy: Optional[float] = None

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> Optional["GeoPoint"]:
        """Parse ``{lat, lng, accuracy?}``; None passes through.
        
        Raises:
            ValidationError: If lat/lng are missing or not numeric
        """
        if payload is None:
            return None
        if not isinstance(payload, dict):
            raise ValidationError("Location must be an object with lat and lng")
        lat, lng = payload.get("lat"), payload.get("lng")
        if not _is_number(lat) or not _is_number(lng):
            raise ValidationError("Location requires numeric lat and lng")
        accuracy = payload.get("accuracy")
        return cls(
            lat=float(lat),
            lng=float(lng),
            accuracy=float(accuracy) if _is_number(accuracy) else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {"lat": self.lat, "lng": self.lng}
        if self.accuracy is not None:
            data["accuracy"] = self.accuracy
        return data

    def describe(self) -> str:
        return f"{self.lat}, {self.lng}"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class Alert:
    """Mutable record tracking one emergency signal.
    
    Mutated only by the lifecycle manager: resolution, cancellation,
    location updates and audio attachment.
    """
    id: str
    user_id: str
    level: AlertLevel
    trigger_source: TriggerSource
    status: AlertStatus = AlertStatus.ACTIVE
    event_id: Optional[str] = None
    location: Optional[GeoPoint] = None
    message: Optional[str] = None
    audio_recording_url: Optional[str] = None
    is_silent_duress: bool = False
    created_at: datetime = field(default_factory=utcnow)
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Alert":
        location = row.get("location")
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            level=AlertLevel(row["level"]),
            trigger_source=TriggerSource(row["trigger_source"]),
            status=AlertStatus(row.get("status", "active")),
            event_id=row.get("event_id"),
            location=GeoPoint.from_payload(location) if location else None,
            message=row.get("message"),
            audio_recording_url=row.get("audio_recording_url"),
            is_silent_duress=bool(row.get("is_silent_duress", False)),
            created_at=parse_timestamp(row.get("created_at")) or utcnow(),
            resolved_at=parse_timestamp(row.get("resolved_at")),
            resolved_by=row.get("resolved_by"),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "event_id": self.event_id,
            "level": self.level.value,
            "location": self.location.to_dict() if self.location else None,
            "message": self.message,
            "audio_recording_url": self.audio_recording_url,
            "status": self.status.value,
            "trigger_source": self.trigger_source.value,
            "is_silent_duress": self.is_silent_duress,
            "created_at": self.created_at,
            "resolved_at": self.resolved_at,
            "resolved_by": self.resolved_by,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.to_row()
        data["created_at"] = isoformat(self.created_at)
        data["resolved_at"] = isoformat(self.resolved_at)
        return data
