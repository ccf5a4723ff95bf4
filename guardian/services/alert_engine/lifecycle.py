"""Alert Lifecycle Manager - the single path every trigger source funnels through.

State machine: active -> resolved | cancelled. Terminal alerts never
return to active. Every alert, whatever its source, is written first,
then fanned out to responders, then has its location recorded. Only
the first write can fail the request.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from guardian.shared.database.records import (
    AlertRepository,
    AudioRepository,
    LocationRepository,
)
from guardian.shared.errors import (
    DependencyFailure,
    Forbidden,
    NotFound,
    Unauthorized,
    ValidationError,
)
from guardian.shared.models import (
    Alert,
    AlertLevel,
    AlertStatus,
    AudioRecording,
    DuressConfig,
    GeoPoint,
    LocationPing,
    Principal,
    TriggerSource,
    can_act_on_any_alert,
)
from guardian.shared.storage import BlobStore, UploadHandle, recording_path
from guardian.shared.utils import hash_pii, utcnow
from guardian.services.duress_service.verifier import DuressVerifier
from guardian.services.notification_service import NotificationFanout

logger = logging.getLogger(__name__)

LocationInput = Union[GeoPoint, Dict[str, Any], None]

DURESS_ALERT_MESSAGE = "Silent duress alert triggered"


@dataclass(frozen=True)
class AudioUploadSlot:
    """Upload target reserved for an alert's audio evidence."""
    alert_id: str
    handle: UploadHandle


class AlertLifecycleManager:
    """Owns alert creation, resolution and evidence attachment."""

    def __init__(
        self,
        alerts: AlertRepository,
        locations: LocationRepository,
        audio: AudioRepository,
        fanout: NotificationFanout,
        verifier: DuressVerifier,
        blob_store: BlobStore,
    ):
        self.alerts = alerts
        self.locations = locations
        self.audio = audio
        self.fanout = fanout
        self.verifier = verifier
        self.blob_store = blob_store

        logger.info("ALERT_LIFECYCLE_MANAGER_INITIALIZED")

    def create_alert(
        self,
        owner_id: str,
        level: Union[AlertLevel, str, None],
        location: LocationInput = None,
        message: Optional[str] = None,
        event_id: Optional[str] = None,
        trigger_source: TriggerSource = TriggerSource.MANUAL,
    ) -> Alert:
        """Create an active alert and notify responders.
        
        Args:
            owner_id: Subject of the alert
            level: One of low/medium/high/critical
            location: Optional {lat, lng, accuracy?}
            message: Optional free text
            event_id: Optional event the alert belongs to
            trigger_source: Where the alert came from
            
        Returns:
            The stored Alert
            
        Raises:
            ValidationError: Missing or unknown level, malformed location
            
        Logs:
            - ALERT_CREATED: After the write (critical)
        """
        if level is None or level == "":
            raise ValidationError("Alert level is required")
        parsed_level = AlertLevel.parse(level)
        point = _parse_location(location)

        return self._open(
            owner_id=owner_id,
            level=parsed_level,
            trigger_source=trigger_source,
            location=point,
            message=message,
            event_id=event_id,
            silent=False,
            record_location=True,
        )

    def create_duress_alert(
        self,
        owner_id: str,
        supplied_password: Optional[str],
        location: LocationInput = None,
    ) -> Alert:
        """Verify a duress password and raise a silent critical alert.
        
        Raises:
            ValidationError: No password supplied
            Unauthorized: Not configured, disabled or wrong password
                (all three are indistinguishable)
        """
        if not supplied_password:
            raise ValidationError("Duress password is required")
        point = _parse_location(location)

        outcome = self.verifier.verify(owner_id, supplied_password)
        if not outcome.matched:
            raise Unauthorized("Invalid duress credentials")

        return self.escalate_duress(owner_id, outcome.config, point)

    def escalate_duress(
        self,
        owner_id: str,
        config: DuressConfig,
        location: LocationInput = None,
        message: str = DURESS_ALERT_MESSAGE,
    ) -> Alert:
        """Raise a silent duress alert for an already verified config.
        
        The location is only recorded when the config has silent
        alerting enabled.
        """
        point = _parse_location(location)

        logger.critical(
            "DURESS_ESCALATION_TRIGGERED",
            extra={
                "user_id_hash": hash_pii(owner_id),
                "has_location": point is not None,
                "action": "SILENT_RESPONDER_ALERT",
            }
        )

        return self._open(
            owner_id=owner_id,
            level=AlertLevel.CRITICAL,
            trigger_source=TriggerSource.DURESS_PASSWORD,
            location=point,
            message=message,
            event_id=None,
            silent=True,
            record_location=config.silent_alert_enabled,
        )

    def reserve_audio_upload(self, user_id: str, alert_id: Optional[str] = None) -> AudioUploadSlot:
        """Reserve an upload slot for audio evidence.
        
        Falls back to the user's active alert when no alert is given.
        
        Raises:
            NotFound: No alert given and none active
            DependencyFailure: Blob storage refused the reservation
        """
        if not alert_id:
            active = self.fetch_active(user_id)
            if active is None:
                raise NotFound("No active alert found")
            alert_id = active.id

        path = recording_path(user_id, alert_id)
        try:
            handle = self.blob_store.create_upload_handle(path)
        except Exception as e:
            logger.error(
                "AUDIO_UPLOAD_RESERVATION_FAILED",
                extra={"alert_id": alert_id, "error": str(e)}
            )
            raise DependencyFailure("Could not reserve audio upload") from e

        logger.info(
            "AUDIO_UPLOAD_RESERVED",
            extra={"alert_id": alert_id, "expires_in": handle.expires_in}
        )
        return AudioUploadSlot(alert_id=alert_id, handle=handle)

    def attach_audio(
        self,
        user_id: str,
        file_path: str,
        alert_id: Optional[str] = None,
        duration_seconds: Optional[float] = None,
    ) -> AudioRecording:
        """Finalize an uploaded recording.
        
        The recording row is the primary write. Pointing the alert at the
        recording is secondary: a stale alert reference never loses audio.
        
        Raises:
            ValidationError: No file path, or a non-numeric duration
        """
        if not file_path:
            raise ValidationError("File path is required")
        if duration_seconds is not None and (
            isinstance(duration_seconds, bool) or not isinstance(duration_seconds, (int, float))
        ):
            raise ValidationError("Duration must be a number")

        file_url = self.blob_store.public_url(file_path)
        recording = self.audio.add(AudioRecording(
            id=str(uuid.uuid4()),
            user_id=user_id,
            file_url=file_url,
            alert_id=alert_id or None,
            duration_seconds=duration_seconds,
        ))

        logger.info(
            "AUDIO_RECORDING_STORED",
            extra={
                "recording_id": recording.id,
                "alert_id": recording.alert_id,
                "duration_seconds": duration_seconds,
            }
        )

        if recording.alert_id:
            self._link_audio(recording)

        return recording

    def resolve(self, principal: Principal, alert_id: str) -> Alert:
        """Resolve an alert, stamping who resolved it and when.
        
        Raises:
            NotFound: Alert does not exist
            Forbidden: Caller is not the owner and holds no security role
            ValidationError: Alert already resolved or cancelled
        """
        return self._finish(
            principal,
            alert_id,
            AlertStatus.RESOLVED,
            {"resolved_by": principal.user_id, "resolved_at": utcnow()},
        )

    def cancel(self, principal: Principal, alert_id: str) -> Alert:
        """Cancel an alert raised in error. Same rules as resolve."""
        return self._finish(principal, alert_id, AlertStatus.CANCELLED, {})

    def fetch_active(self, user_id: str) -> Optional[Alert]:
        """Most recently created active alert owned by the user.
        
        Several alerts may be active at once; creating an alert never
        closes earlier ones.
        """
        return self.alerts.find_active_for_user(user_id)

    def _open(
        self,
        owner_id: str,
        level: AlertLevel,
        trigger_source: TriggerSource,
        location: Optional[GeoPoint],
        message: Optional[str],
        event_id: Optional[str],
        silent: bool,
        record_location: bool,
    ) -> Alert:
        alert = self.alerts.add(Alert(
            id=str(uuid.uuid4()),
            user_id=owner_id,
            level=level,
            trigger_source=trigger_source,
            event_id=event_id or None,
            location=location,
            message=message or None,
            is_silent_duress=trigger_source is TriggerSource.DURESS_PASSWORD,
        ))

        logger.critical(
            "ALERT_CREATED",
            extra={
                "alert_id": alert.id,
                "user_id_hash": hash_pii(owner_id),
                "level": alert.level.value,
                "trigger_source": alert.trigger_source.value,
                "event_id": alert.event_id,
            }
        )

        self.fanout.notify(alert, silent=silent)

        if location is not None and record_location:
            self._record_location(alert, location)

        return alert

    def _record_location(self, alert: Alert, location: GeoPoint) -> None:
        try:
            self.locations.add(LocationPing(
                id=str(uuid.uuid4()),
                user_id=alert.user_id,
                event_id=alert.event_id,
                alert_id=alert.id,
                latitude=location.lat,
                longitude=location.lng,
                accuracy=location.accuracy,
                is_emergency_tracking=True,
            ))
        except Exception as e:
            logger.error(
                "ALERT_LOCATION_LOG_FAILED",
                extra={"alert_id": alert.id, "error": str(e)}
            )

    def _link_audio(self, recording: AudioRecording) -> None:
        try:
            updated = self.alerts.update_fields(
                recording.alert_id,
                {"audio_recording_url": recording.file_url},
            )
        except Exception as e:
            logger.error(
                "AUDIO_ALERT_LINK_FAILED",
                extra={
                    "recording_id": recording.id,
                    "alert_id": recording.alert_id,
                    "error": str(e),
                }
            )
            return

        if updated is None:
            logger.warning(
                "AUDIO_ALERT_REFERENCE_STALE",
                extra={"recording_id": recording.id, "alert_id": recording.alert_id}
            )

    def _finish(
        self,
        principal: Principal,
        alert_id: str,
        target: AlertStatus,
        changes: Dict[str, Any],
    ) -> Alert:
        if not alert_id:
            raise ValidationError("Alert ID is required")

        alert = self.alerts.find_by_id(alert_id)
        if alert is None:
            raise NotFound("Alert not found")

        if alert.user_id != principal.user_id and not can_act_on_any_alert(principal.role):
            logger.warning(
                "ALERT_TRANSITION_FORBIDDEN",
                extra={
                    "alert_id": alert_id,
                    "requester_hash": hash_pii(principal.user_id),
                    "role": principal.role.value,
                    "target": target.value,
                }
            )
            raise Forbidden("Not permitted to modify this alert")

        if not alert.status.can_transition_to(target):
            raise ValidationError(f"Alert is already {alert.status.value}")

        updated = self.alerts.transition(alert_id, AlertStatus.ACTIVE, target, changes)
        if updated is None:
            # Lost a race with a concurrent resolve/cancel
            current = self.alerts.get_by_id(alert_id)
            raise ValidationError(f"Alert is already {current.status.value}")

        logger.info(
            "ALERT_TRANSITIONED",
            extra={
                "alert_id": alert_id,
                "status": updated.status.value,
                "by_hash": hash_pii(principal.user_id),
                "by_role": principal.role.value,
            }
        )
        return updated


def _parse_location(location: LocationInput) -> Optional[GeoPoint]:
    if location is None or isinstance(location, GeoPoint):
        return location
    return GeoPoint.from_payload(location)
