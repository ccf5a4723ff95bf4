"""Per-user covert configuration and paired wearable devices."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from guardian.shared.utils import isoformat, parse_timestamp, utcnow


class DecoyAppType(Enum):
    """Innocuous app the fake interface imitates."""
    CALCULATOR = "calculator"
    WEATHER = "weather"
    NOTES = "notes"


class ActivationGesture(Enum):
    """Gesture that leaves the fake interface."""
    TRIPLE_TAP = "triple_tap"
    LONG_PRESS = "long_press"
    INVISIBLE_BUTTON = "invisible_button"


@dataclass
class DuressConfig:
    """Covert configuration; at most one per user.
    
    ``duress_password_secret`` is an argon2 hash, never the password.
    ``fake_interface_active`` is session state toggled independently of
    ``enabled``; when ``fake_interface_expires_at`` is set it lapses on
    its own.
    """
    id: str
    user_id: str
    duress_password_secret: str
    enabled: bool = True
    silent_alert_enabled: bool = True
    fake_interface_active: bool = False
    fake_interface_expires_at: Optional[datetime] = None
    app_type: DecoyAppType = DecoyAppType.CALCULATOR
    activation_gesture: ActivationGesture = ActivationGesture.TRIPLE_TAP
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def fake_interface_in_effect(self, now: Optional[datetime] = None) -> bool:
        if not self.fake_interface_active:
            return False
        if self.fake_interface_expires_at is None:
            return True
        return (now or utcnow()) < self.fake_interface_expires_at

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "DuressConfig":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            duress_password_secret=row["duress_password_secret"],
            enabled=bool(row.get("enabled", True)),
            silent_alert_enabled=bool(row.get("silent_alert_enabled", True)),
            fake_interface_active=bool(row.get("fake_interface_active", False)),
            fake_interface_expires_at=parse_timestamp(row.get("fake_interface_expires_at")),
            app_type=DecoyAppType(row.get("app_type", "calculator")),
            activation_gesture=ActivationGesture(row.get("activation_gesture", "triple_tap")),
            created_at=parse_timestamp(row.get("created_at")) or utcnow(),
            updated_at=parse_timestamp(row.get("updated_at")) or utcnow(),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "duress_password_secret": self.duress_password_secret,
            "enabled": self.enabled,
            "silent_alert_enabled": self.silent_alert_enabled,
            "fake_interface_active": self.fake_interface_active,
            "fake_interface_expires_at": self.fake_interface_expires_at,
            "app_type": self.app_type.value,
            "activation_gesture": self.activation_gesture.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def to_public_dict(self) -> Dict[str, Any]:
        """Client-facing view; the secret is never included."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "enabled": self.enabled,
            "silent_alert_enabled": self.silent_alert_enabled,
            "fake_interface_active": self.fake_interface_in_effect(),
            "fake_interface_expires_at": isoformat(self.fake_interface_expires_at),
            "app_type": self.app_type.value,
            "activation_gesture": self.activation_gesture.value,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class DeviceType(Enum):
    WATCH = "watch"
    BUTTON = "button"
    BRACELET = "bracelet"
    PENDANT = "pendant"
    OTHER = "other"


@dataclass
class Wearable:
    """A paired wearable. Unpairing is a soft delete."""
    id: str
    user_id: str
    name: str
    device_type: DeviceType
    mac_address: Optional[str] = None
    bluetooth_device_id: Optional[str] = None
    is_paired: bool = True
    is_connected: bool = False
    battery_level: Optional[int] = None
    firmware_version: Optional[str] = None
    last_heart_rate: Optional[int] = None
    gesture_config: Dict[str, bool] = field(default_factory=dict)
    last_sync: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)
    deleted_at: Optional[datetime] = None

    def triggers_on(self, gesture_type: str) -> bool:
        """Whether the gesture is configured as an alert trigger."""
        return self.gesture_config.get(gesture_type) is True

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Wearable":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            device_type=DeviceType(row["device_type"]),
            mac_address=row.get("mac_address"),
            bluetooth_device_id=row.get("bluetooth_device_id"),
            is_paired=bool(row.get("is_paired", True)),
            is_connected=bool(row.get("is_connected", False)),
            battery_level=row.get("battery_level"),
            firmware_version=row.get("firmware_version"),
            last_heart_rate=row.get("last_heart_rate"),
            gesture_config=dict(row.get("gesture_config") or {}),
            last_sync=parse_timestamp(row.get("last_sync")),
            created_at=parse_timestamp(row.get("created_at")) or utcnow(),
            deleted_at=parse_timestamp(row.get("deleted_at")),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "device_type": self.device_type.value,
            "mac_address": self.mac_address,
            "bluetooth_device_id": self.bluetooth_device_id,
            "is_paired": self.is_paired,
            "is_connected": self.is_connected,
            "battery_level": self.battery_level,
            "firmware_version": self.firmware_version,
            "last_heart_rate": self.last_heart_rate,
            "gesture_config": self.gesture_config,
            "last_sync": self.last_sync,
            "created_at": self.created_at,
            "deleted_at": self.deleted_at,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.to_row()
        data["last_sync"] = isoformat(self.last_sync)
        data["created_at"] = isoformat(self.created_at)
        data["deleted_at"] = isoformat(self.deleted_at)
        return data
