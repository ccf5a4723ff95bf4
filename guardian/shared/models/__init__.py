"""Shared domain models for the Guardian platform."""
from .alert import (
    Alert,
    AlertLevel,
    AlertStatus,
    GeoPoint,
    TERMINAL_STATUSES,
    TriggerSource,
)
from .devices import (
    ActivationGesture,
    DecoyAppType,
    DeviceType,
    DuressConfig,
    Wearable,
)
from .evidence import (
    AudioRecording,
    Event,
    LocationPing,
    Message,
    event_thread_id,
)
from .identity import Principal, Profile, Role, can_act_on_any_alert, is_security_role
from .reporting import IncidentReport, Notification

__all__ = [
    "Alert",
    "AlertLevel",
    "AlertStatus",
    "GeoPoint",
    "TERMINAL_STATUSES",
    "TriggerSource",
    "ActivationGesture",
    "DecoyAppType",
    "DeviceType",
    "DuressConfig",
    "Wearable",
    "AudioRecording",
    "Event",
    "LocationPing",
    "Message",
    "event_thread_id",
    "Principal",
    "Profile",
    "Role",
    "can_act_on_any_alert",
    "is_security_role",
    "IncidentReport",
    "Notification",
]
