"""Notification Service: responder fan-out for alerts.

Given an alert and a silence flag, resolves the responder roster
(active security_admin / security_team profiles) and dispatches one
push record per responder, plus one SMS per responder with a phone
number when an SMS provider is configured.
"""

from .config import FanoutConfig, SmsConfig
from .fanout import FanoutResult, NotificationFanout
from .sms_transport import SmsDeliveryError, SmsTransport, TwilioSmsTransport, build_sms_transport

__all__ = [
    "FanoutConfig",
    "SmsConfig",
    "FanoutResult",
    "NotificationFanout",
    "SmsDeliveryError",
    "SmsTransport",
    "TwilioSmsTransport",
    "build_sms_transport",
]
