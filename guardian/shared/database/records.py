"""Typed repositories for every record kind the core reads or writes."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from guardian.shared.models import (
    Alert,
    AlertStatus,
    AudioRecording,
    DuressConfig,
    Event,
    IncidentReport,
    LocationPing,
    Message,
    Notification,
    Profile,
    Role,
    Wearable,
)
from guardian.shared.utils import utcnow
from .repository import BaseRepository
from .store import Filter, Store, eq, gte, in_, is_null, lte

logger = logging.getLogger(__name__)


class AlertRepository(BaseRepository[Alert]):
    """Alerts are never deleted; status changes are conditional updates."""

    def __init__(self, store: Store):
        super().__init__(store, "alerts")

    def _row_to_entity(self, row: Dict[str, Any]) -> Alert:
        return Alert.from_row(row)

    def _entity_to_params(self, entity: Alert) -> Dict[str, Any]:
        return entity.to_row()

    def find_active_for_user(self, user_id: str) -> Optional[Alert]:
        """Most recently created active alert owned by the user."""
        return self._find_one(
            [eq("user_id", user_id), eq("status", AlertStatus.ACTIVE.value)],
            order_by="created_at",
            descending=True,
        )

    def list_active_for_user(self, user_id: str) -> List[Alert]:
        return self._find(
            [eq("user_id", user_id), eq("status", AlertStatus.ACTIVE.value)],
            order_by="created_at",
            descending=True,
        )

    def update_fields(self, alert_id: str, changes: Dict[str, Any]) -> Optional[Alert]:
        updated = self._update([eq("id", alert_id)], changes)
        return updated[0] if updated else None

    def transition(
        self,
        alert_id: str,
        expected: AlertStatus,
        target: AlertStatus,
        changes: Dict[str, Any],
    ) -> Optional[Alert]:
        """Move an alert between states only if it is still in ``expected``.
        
        Returns None when the alert was no longer in the expected state,
        which keeps a concurrent resolve from overwriting a cancel.
        """
        values = dict(changes)
        values["status"] = target.value
        updated = self._update(
            [eq("id", alert_id), eq("status", expected.value)],
            values,
        )
        return updated[0] if updated else None


class LocationRepository(BaseRepository[LocationPing]):
    """Append-only GPS samples."""

    HISTORY_LIMIT = 1000

    def __init__(self, store: Store):
        super().__init__(store, "location_logs")

    def _row_to_entity(self, row: Dict[str, Any]) -> LocationPing:
        return LocationPing.from_row(row)

    def _entity_to_params(self, entity: LocationPing) -> Dict[str, Any]:
        return entity.to_row()

    def for_alert(self, alert_id: str) -> List[LocationPing]:
        return self._find([eq("alert_id", alert_id)], order_by="timestamp")

    def history(
        self,
        user_id: str,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        event_id: Optional[str] = None,
        alert_id: Optional[str] = None,
        limit: int = HISTORY_LIMIT,
    ) -> List[LocationPing]:
        filters: List[Filter] = [eq("user_id", user_id)]
        if start_time is not None:
            filters.append(gte("timestamp", start_time))
        if end_time is not None:
            filters.append(lte("timestamp", end_time))
        if event_id is not None:
            filters.append(eq("event_id", event_id))
        if alert_id is not None:
            filters.append(eq("alert_id", alert_id))
        return self._find(filters, order_by="timestamp", descending=True, limit=limit)


class AudioRepository(BaseRepository[AudioRecording]):
    """Audio evidence rows; deletion is soft."""

    def __init__(self, store: Store):
        super().__init__(store, "audio_recordings")

    def _row_to_entity(self, row: Dict[str, Any]) -> AudioRecording:
        return AudioRecording.from_row(row)

    def _entity_to_params(self, entity: AudioRecording) -> Dict[str, Any]:
        return entity.to_row()

    def for_alert(self, alert_id: str) -> List[AudioRecording]:
        """Non-deleted recordings in store order."""
        return self._find([eq("alert_id", alert_id), is_null("deleted_at")])


class MessageRepository(BaseRepository[Message]):
    """Read-only access to communication threads."""

    def __init__(self, store: Store):
        super().__init__(store, "messages")

    def _row_to_entity(self, row: Dict[str, Any]) -> Message:
        return Message.from_row(row)

    def _entity_to_params(self, entity: Message) -> Dict[str, Any]:
        return {
            "id": entity.id,
            "thread_id": entity.thread_id,
            "sender_id": entity.sender_id,
            "content": entity.content,
            "type": entity.type,
            "created_at": entity.created_at,
            "deleted_at": entity.deleted_at,
        }

    def for_thread(self, thread_id: str) -> List[Message]:
        return self._find(
            [eq("thread_id", thread_id), is_null("deleted_at")],
            order_by="created_at",
        )


class EventRepository(BaseRepository[Event]):
    """Read-only access to events and their security assignments."""

    def __init__(self, store: Store):
        super().__init__(store, "events")

    def _row_to_entity(self, row: Dict[str, Any]) -> Event:
        return Event.from_row(row)

    def _entity_to_params(self, entity: Event) -> Dict[str, Any]:
        return {
            "id": entity.id,
            "name": entity.name,
            "status": entity.status,
            "location": entity.location,
            "threat_level": entity.threat_level,
            "created_at": entity.created_at,
            "updated_at": entity.updated_at,
        }

    def assigned_event_ids(self, user_id: str) -> List[str]:
        rows = self.store.query("event_assignments", [eq("user_id", user_id)])
        return [row["event_id"] for row in rows]


class DuressConfigRepository(BaseRepository[DuressConfig]):
    """At most one config per user; lookups go through ``user_id``."""

    def __init__(self, store: Store):
        super().__init__(store, "decoy_configs")

    def _row_to_entity(self, row: Dict[str, Any]) -> DuressConfig:
        return DuressConfig.from_row(row)

    def _entity_to_params(self, entity: DuressConfig) -> Dict[str, Any]:
        return entity.to_row()

    def find_for_user(self, user_id: str) -> Optional[DuressConfig]:
        return self._find_one([eq("user_id", user_id)])

    def update_for_user(self, user_id: str, changes: Dict[str, Any]) -> Optional[DuressConfig]:
        values = dict(changes)
        values["updated_at"] = utcnow()
        updated = self._update([eq("user_id", user_id)], values)
        return updated[0] if updated else None


class ProfileRepository(BaseRepository[Profile]):

    SECURITY_ROLES = (Role.SECURITY_ADMIN, Role.SECURITY_TEAM)

    def __init__(self, store: Store):
        super().__init__(store, "profiles")

    def _row_to_entity(self, row: Dict[str, Any]) -> Profile:
        return Profile.from_row(row)

    def _entity_to_params(self, entity: Profile) -> Dict[str, Any]:
        return entity.to_row()

    def active_responders(self) -> List[Profile]:
        """Responder roster, recomputed on every call."""
        return self._find([
            in_("role", [r.value for r in self.SECURITY_ROLES]),
            eq("is_active", True),
        ])


class NotificationRepository(BaseRepository[Notification]):

    def __init__(self, store: Store):
        super().__init__(store, "notifications")

    def _row_to_entity(self, row: Dict[str, Any]) -> Notification:
        return Notification.from_row(row)

    def _entity_to_params(self, entity: Notification) -> Dict[str, Any]:
        return entity.to_row()

    def for_alert(self, alert_id: str) -> List[Notification]:
        return self._find([eq("alert_id", alert_id)])


class WearableRepository(BaseRepository[Wearable]):
    """Paired devices; unpaired devices keep their row with ``deleted_at``."""

    def __init__(self, store: Store):
        super().__init__(store, "wearables")

    def _row_to_entity(self, row: Dict[str, Any]) -> Wearable:
        return Wearable.from_row(row)

    def _entity_to_params(self, entity: Wearable) -> Dict[str, Any]:
        return entity.to_row()

    def find_paired(self, device_id: str, user_id: str) -> Optional[Wearable]:
        return self._find_one([
            eq("id", device_id),
            eq("user_id", user_id),
            eq("is_paired", True),
        ])

    def find_by_mac(self, mac_address: str) -> Optional[Wearable]:
        return self._find_one([eq("mac_address", mac_address), is_null("deleted_at")])

    def update_owned(
        self,
        device_id: str,
        user_id: str,
        changes: Dict[str, Any],
    ) -> Optional[Wearable]:
        updated = self._update([eq("id", device_id), eq("user_id", user_id)], changes)
        return updated[0] if updated else None

    def list_paired(self, user_id: str) -> List[Wearable]:
        return self._find(
            [eq("user_id", user_id), eq("is_paired", True), is_null("deleted_at")],
            order_by="created_at",
            descending=True,
        )


class IncidentReportRepository(BaseRepository[IncidentReport]):

    def __init__(self, store: Store):
        super().__init__(store, "incident_reports")

    def _row_to_entity(self, row: Dict[str, Any]) -> IncidentReport:
        return IncidentReport.from_row(row)

    def _entity_to_params(self, entity: IncidentReport) -> Dict[str, Any]:
        return entity.to_row()

    def find_live(self, report_id: str) -> Optional[IncidentReport]:
        return self._find_one([eq("id", report_id), is_null("deleted_at")])

    def update_fields(self, report_id: str, changes: Dict[str, Any]) -> Optional[IncidentReport]:
        values = dict(changes)
        values["updated_at"] = utcnow()
        updated = self._update([eq("id", report_id)], values)
        return updated[0] if updated else None

    def list_live(
        self,
        user_id: Optional[str] = None,
        event_ids: Optional[Sequence[str]] = None,
    ) -> List[IncidentReport]:
        filters: List[Filter] = [is_null("deleted_at")]
        if user_id is not None:
            filters.append(eq("user_id", user_id))
        if event_ids is not None:
            filters.append(in_("event_id", event_ids))
        return self._find(filters, order_by="created_at", descending=True)
