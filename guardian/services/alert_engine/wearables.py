"""Wearable device registry and wearable-triggered alerts.

Button, heart-rate and gesture triggers are thin callers of
AlertLifecycleManager.create_alert with source-specific rules.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from guardian.shared.database.records import WearableRepository
from guardian.shared.errors import NotFound, ValidationError
from guardian.shared.models import (
    Alert,
    AlertLevel,
    DeviceType,
    TriggerSource,
    Wearable,
)
from guardian.shared.utils import hash_pii, utcnow
from .config import HeartRateThresholds
from .lifecycle import AlertLifecycleManager, LocationInput

logger = logging.getLogger(__name__)

DEVICE_NOT_FOUND = "Device not found or not paired"

# Fields a device may report about itself
_STATUS_FIELDS = {
    "battery_level": "battery_level",
    "firmware_version": "firmware_version",
    "is_connected": "is_connected",
    "heart_rate": "last_heart_rate",
}


@dataclass(frozen=True)
class TriggerResult:
    """Outcome of a wearable trigger: an alert, or a reason there is none."""
    alert: Optional[Alert] = None
    message: Optional[str] = None

    @property
    def escalated(self) -> bool:
        return self.alert is not None


class WearableService:
    """Pairs devices and turns their signals into alerts."""

    def __init__(
        self,
        wearables: WearableRepository,
        lifecycle: AlertLifecycleManager,
        thresholds: Optional[HeartRateThresholds] = None,
    ):
        self.wearables = wearables
        self.lifecycle = lifecycle
        self.thresholds = thresholds or HeartRateThresholds()

    def pair(
        self,
        user_id: str,
        name: Optional[str],
        device_type: Optional[str],
        mac_address: Optional[str] = None,
        bluetooth_device_id: Optional[str] = None,
        gesture_config: Optional[Dict[str, bool]] = None,
    ) -> Wearable:
        """Register a device for the user.
        
        Raises:
            ValidationError: Missing name/type, unknown type, or the MAC
                address is already paired
        """
        if not name or not device_type:
            raise ValidationError("Device name and type are required")
        try:
            parsed_type = DeviceType(device_type)
        except ValueError:
            raise ValidationError(
                f"Device type must be one of: {', '.join(t.value for t in DeviceType)}"
            )

        if mac_address and self.wearables.find_by_mac(mac_address) is not None:
            raise ValidationError("Device already paired")

        device = self.wearables.add(Wearable(
            id=str(uuid.uuid4()),
            user_id=user_id,
            name=name,
            device_type=parsed_type,
            mac_address=mac_address or None,
            bluetooth_device_id=bluetooth_device_id or None,
            gesture_config=dict(gesture_config or {}),
            last_sync=utcnow(),
        ))

        logger.info(
            "WEARABLE_PAIRED",
            extra={
                "device_id": device.id,
                "user_id_hash": hash_pii(user_id),
                "device_type": device.device_type.value,
            }
        )
        return device

    def unpair(self, user_id: str, device_id: Optional[str]) -> Wearable:
        """Soft-delete a device so it can no longer trigger alerts."""
        if not device_id:
            raise ValidationError("Device ID is required")

        device = self.wearables.update_owned(device_id, user_id, {
            "is_paired": False,
            "is_connected": False,
            "deleted_at": utcnow(),
        })
        if device is None:
            raise NotFound(DEVICE_NOT_FOUND)

        logger.info("WEARABLE_UNPAIRED", extra={"device_id": device_id})
        return device

    def update_status(self, user_id: str, device_id: Optional[str], status: Dict[str, Any]) -> Wearable:
        """Record what a device reports about itself and stamp ``last_sync``."""
        if not device_id:
            raise ValidationError("Device ID is required")

        changes: Dict[str, Any] = {"last_sync": utcnow()}
        for field_name, column in _STATUS_FIELDS.items():
            if status.get(field_name) is not None:
                changes[column] = status[field_name]

        device = self.wearables.update_owned(device_id, user_id, changes)
        if device is None:
            raise NotFound(DEVICE_NOT_FOUND)
        return device

    def get_devices(self, user_id: str) -> List[Wearable]:
        return self.wearables.list_paired(user_id)

    def trigger_button(
        self,
        user_id: str,
        device_id: Optional[str],
        location: LocationInput = None,
    ) -> TriggerResult:
        """Panic button: always escalates at critical."""
        if not device_id:
            raise ValidationError("Device ID is required")
        device = self._paired_device(device_id, user_id)

        alert = self.lifecycle.create_alert(
            owner_id=user_id,
            level=AlertLevel.CRITICAL,
            location=location,
            message=f"Emergency button pressed on {device.name}",
            trigger_source=TriggerSource.WEARABLE_BUTTON,
        )
        return TriggerResult(alert=alert)

    def trigger_heartrate(
        self,
        user_id: str,
        device_id: Optional[str],
        heart_rate: Optional[float],
        previous_heart_rate: Optional[float] = None,
        location: LocationInput = None,
    ) -> TriggerResult:
        """Escalate on an abnormal heart rate.
        
        ``previous_heart_rate`` defaults to the device's last stored
        reading. A spike escalates at high; a sustained high rate
        without a spike escalates at medium. The reading is stored
        either way.
        
        Logs:
            - WEARABLE_HEARTRATE_ABNORMAL: When the reading escalates
        """
        if not device_id or not heart_rate:
            raise ValidationError("Device ID and heart rate are required")
        if isinstance(heart_rate, bool) or not isinstance(heart_rate, (int, float)):
            raise ValidationError("Heart rate must be a number")
        if previous_heart_rate is not None and (
            isinstance(previous_heart_rate, bool) or not isinstance(previous_heart_rate, (int, float))
        ):
            raise ValidationError("Previous heart rate must be a number")
        device = self._paired_device(device_id, user_id)

        previous = previous_heart_rate if previous_heart_rate is not None else device.last_heart_rate
        spike = self.thresholds.is_spike(heart_rate, previous)
        sustained = self.thresholds.is_sustained_high(heart_rate)

        if not spike and not sustained:
            self.wearables.update_owned(device.id, user_id, {"last_heart_rate": heart_rate})
            return TriggerResult(message="Heart rate normal")

        level = self.thresholds.spike_level if spike else self.thresholds.sustained_level
        logger.warning(
            "WEARABLE_HEARTRATE_ABNORMAL",
            extra={
                "device_id": device_id,
                "heart_rate": heart_rate,
                "previous_heart_rate": previous,
                "spike": spike,
                "level": level,
            }
        )

        alert = self.lifecycle.create_alert(
            owner_id=user_id,
            level=level,
            location=location,
            message=f"Abnormal heart rate detected: {heart_rate} bpm on {device.name}",
            trigger_source=TriggerSource.WEARABLE_HEARTRATE,
        )
        self._store_heart_rate(device, heart_rate)
        return TriggerResult(alert=alert)

    def trigger_gesture(
        self,
        user_id: str,
        device_id: Optional[str],
        gesture_type: Optional[str],
        location: LocationInput = None,
    ) -> TriggerResult:
        """Escalate at high only if the gesture is configured as a trigger."""
        if not device_id or not gesture_type:
            raise ValidationError("Device ID and gesture type are required")
        device = self._paired_device(device_id, user_id)

        if not device.triggers_on(gesture_type):
            return TriggerResult(message="Gesture not configured for alerts")

        alert = self.lifecycle.create_alert(
            owner_id=user_id,
            level=AlertLevel.HIGH,
            location=location,
            message=f"Emergency gesture ({gesture_type}) detected on {device.name}",
            trigger_source=TriggerSource.WEARABLE_GESTURE,
        )
        return TriggerResult(alert=alert)

    def _paired_device(self, device_id: str, user_id: str) -> Wearable:
        device = self.wearables.find_paired(device_id, user_id)
        if device is None:
            raise NotFound(DEVICE_NOT_FOUND)
        return device

    def _store_heart_rate(self, device: Wearable, heart_rate: float) -> None:
        try:
            self.wearables.update_owned(device.id, device.user_id, {"last_heart_rate": heart_rate})
        except Exception as e:
            logger.error(
                "WEARABLE_HEARTRATE_STORE_FAILED",
                extra={"device_id": device.id, "error": str(e)}
            )
