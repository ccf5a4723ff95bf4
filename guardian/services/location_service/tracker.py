"""Location submission and history.

A ping is emergency tracking when it is tagged with an alert, or when its
submitter has an active alert at the moment it arrives. Tagged pings also
move the alert's last known location.
"""
import logging
import uuid
from typing import Any, List, Optional

from guardian.shared.database.records import AlertRepository, LocationRepository
from guardian.shared.errors import Forbidden, ValidationError
from guardian.shared.models import GeoPoint, LocationPing, Principal
from guardian.shared.utils import hash_pii, parse_timestamp

logger = logging.getLogger(__name__)


class LocationTracker:
    """Appends GPS samples and serves location history."""

    def __init__(self, locations: LocationRepository, alerts: AlertRepository):
        self.locations = locations
        self.alerts = alerts

    def submit(
        self,
        user_id: str,
        latitude: Any,
        longitude: Any,
        accuracy: Optional[float] = None,
        altitude: Optional[float] = None,
        heading: Optional[float] = None,
        speed: Optional[float] = None,
        event_id: Optional[str] = None,
        alert_id: Optional[str] = None,
    ) -> LocationPing:
        """Store one GPS sample.
        
        Raises:
            ValidationError: Missing or non-numeric coordinates
        """
        if latitude is None or longitude is None:
            raise ValidationError("Latitude and longitude are required")
        point = GeoPoint.from_payload({"lat": latitude, "lng": longitude, "accuracy": accuracy})

        if alert_id:
            emergency = True
        else:
            emergency = self.alerts.find_active_for_user(user_id) is not None

        ping = self.locations.add(LocationPing(
            id=str(uuid.uuid4()),
            user_id=user_id,
            event_id=event_id or None,
            alert_id=alert_id or None,
            latitude=point.lat,
            longitude=point.lng,
            accuracy=point.accuracy,
            altitude=altitude,
            heading=heading,
            speed=speed,
            is_emergency_tracking=emergency,
        ))

        if alert_id:
            self._move_alert(alert_id, point)

        return ping

    def history(
        self,
        principal: Principal,
        target_user_id: Optional[str] = None,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
        event_id: Optional[str] = None,
        alert_id: Optional[str] = None,
    ) -> List[LocationPing]:
        """Newest-first history, capped at LocationRepository.HISTORY_LIMIT.
        
        Raises:
            Forbidden: Reading another user's history without a security role
            ValidationError: Unparseable time bound
        """
        target = target_user_id or principal.user_id
        if target != principal.user_id and not principal.is_security:
            logger.warning(
                "LOCATION_HISTORY_FORBIDDEN",
                extra={
                    "requester_hash": hash_pii(principal.user_id),
                    "target_hash": hash_pii(target),
                }
            )
            raise Forbidden("Not permitted to view this location history")

        return self.locations.history(
            target,
            start_time=_parse_bound(start_time, "start_time"),
            end_time=_parse_bound(end_time, "end_time"),
            event_id=event_id or None,
            alert_id=alert_id or None,
        )

    def _move_alert(self, alert_id: str, point: GeoPoint) -> None:
        try:
            updated = self.alerts.update_fields(alert_id, {"location": point.to_dict()})
        except Exception as e:
            logger.error(
                "ALERT_LOCATION_UPDATE_FAILED",
                extra={"alert_id": alert_id, "error": str(e)}
            )
            return
        if updated is None:
            logger.warning("ALERT_LOCATION_UPDATE_STALE", extra={"alert_id": alert_id})


def _parse_bound(value: Optional[str], name: str):
    if not value:
        return None
    try:
        return parse_timestamp(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an ISO-8601 timestamp")
