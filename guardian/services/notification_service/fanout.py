"""Notification fan-out: one alert to every responder on every channel.

Every trigger source (manual, duress, wearable) goes through this one
component, parameterized only by ``silent``.

Delivery policy:
    - Push records are written to the store before notify() returns
    - SMS is best-effort, bounded in time, isolated per recipient
    - Nothing here raises: an alert that was written stays created even
      if every delivery attempt fails. Failures are logged at CRITICAL.
"""
import logging
import uuid
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import List, Optional

import requests

from guardian.shared.database.records import NotificationRepository, ProfileRepository
from guardian.shared.models import Alert, Notification, Profile
from guardian.shared.utils import hash_pii
from .config import FanoutConfig
from .sms_transport import SmsTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FanoutResult:
    """Outcome of one fan-out, for logging and tests."""
    alert_id: str
    silent: bool
    recipients: int
    push_recorded: int
    push_failed: bool = False
    sms_enabled: bool = False
    sms_sent: int = 0
    sms_failed: int = 0
    sms_pending: int = 0


def compose_title(alert: Alert) -> str:
    return f"Emergency Alert: {alert.level.value.upper()}"


def compose_body(alert: Alert, subject_name: str) -> str:
    return f"{subject_name} has triggered a {alert.level.value} alert"


def compose_sms(alert: Alert, subject_name: str) -> str:
    location = alert.location.describe() if alert.location else "Unknown"
    return (
        f"EMERGENCY ALERT: {subject_name} - {alert.level.value.upper()} "
        f"alert triggered. Location: {location}"
    )


def compose_payload(alert: Alert, silent: bool) -> dict:
    """Data block of the push record.
    
    ``silent`` is a presentation marker only: severity fields are the
    same as for a non-silent alert of the same level.
    """
    payload = {
        "alert_id": alert.id,
        "level": alert.level.value,
        "trigger_source": alert.trigger_source.value,
    }
    if silent:
        payload["silent"] = True
    return payload


class NotificationFanout:
    """Resolves the responder roster and dispatches to it."""

    def __init__(
        self,
        profiles: ProfileRepository,
        notifications: NotificationRepository,
        sms_transport: Optional[SmsTransport] = None,
        config: Optional[FanoutConfig] = None,
    ):
        self.profiles = profiles
        self.notifications = notifications
        self.sms_transport = sms_transport
        self.config = config or FanoutConfig()
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.sms_max_workers,
            thread_name_prefix="sms-fanout",
        )

        logger.info(
            "NOTIFICATION_FANOUT_INITIALIZED",
            extra={
                "sms_enabled": sms_transport is not None,
                "sms_dispatch_wait_seconds": self.config.sms_dispatch_wait_seconds,
            }
        )

    def notify(self, alert: Alert, silent: bool = False) -> FanoutResult:
        """Fan an alert out to all active responders.
        
        Args:
            alert: Alert that was just written
            silent: Mark records so presenting clients suppress indication
            
        Returns:
            FanoutResult describing what was delivered
            
        Logs:
            - NOTIFICATION_FANOUT_STARTED: On entry
            - NOTIFICATION_ROSTER_UNAVAILABLE: Roster lookup failed (critical)
            - NOTIFICATION_PUSH_RECORD_FAILED: Push rows not written (critical)
            - NOTIFICATION_FANOUT_COMPLETED: On exit
        """
        logger.info(
            "NOTIFICATION_FANOUT_STARTED",
            extra={
                "alert_id": alert.id,
                "level": alert.level.value,
                "silent": silent,
            }
        )

        try:
            roster = self.profiles.active_responders()
        except Exception as e:
            logger.critical(
                "NOTIFICATION_ROSTER_UNAVAILABLE",
                extra={
                    "alert_id": alert.id,
                    "error": str(e),
                    "action": "MANUAL_DISPATCH_REQUIRED",
                }
            )
            return FanoutResult(
                alert_id=alert.id,
                silent=silent,
                recipients=0,
                push_recorded=0,
                push_failed=True,
            )

        subject_name = self._subject_name(alert)
        push_recorded, push_failed = self._record_push(alert, roster, subject_name, silent)

        sms_sent = sms_failed = sms_pending = 0
        if self.sms_transport is not None:
            sms_sent, sms_failed, sms_pending = self._dispatch_sms(alert, roster, subject_name)

        result = FanoutResult(
            alert_id=alert.id,
            silent=silent,
            recipients=len(roster),
            push_recorded=push_recorded,
            push_failed=push_failed,
            sms_enabled=self.sms_transport is not None,
            sms_sent=sms_sent,
            sms_failed=sms_failed,
            sms_pending=sms_pending,
        )

        log = logger.critical if (push_failed or sms_failed) else logger.info
        log(
            "NOTIFICATION_FANOUT_COMPLETED",
            extra={
                "alert_id": alert.id,
                "recipients": result.recipients,
                "push_recorded": result.push_recorded,
                "push_failed": result.push_failed,
                "sms_sent": result.sms_sent,
                "sms_failed": result.sms_failed,
                "sms_pending": result.sms_pending,
            }
        )
        return result

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)

    def _subject_name(self, alert: Alert) -> str:
        try:
            profile = self.profiles.find_by_id(alert.user_id)
        except Exception as e:
            logger.error(
                "NOTIFICATION_SUBJECT_LOOKUP_FAILED",
                extra={"alert_id": alert.id, "error": str(e)}
            )
            return "User"
        if profile is None or not profile.full_name:
            return "User"
        return profile.full_name

    def _record_push(
        self,
        alert: Alert,
        roster: List[Profile],
        subject_name: str,
        silent: bool,
    ):
        title = compose_title(alert)
        body = compose_body(alert, subject_name)
        recorded = 0
        failed = False
        for responder in roster:
            record = Notification(
                id=str(uuid.uuid4()),
                recipient_id=responder.id,
                alert_id=alert.id,
                title=title,
                body=body,
                payload=compose_payload(alert, silent),
            )
            try:
                self.notifications.add(record)
                recorded += 1
            except Exception as e:
                failed = True
                logger.critical(
                    "NOTIFICATION_PUSH_RECORD_FAILED",
                    extra={
                        "alert_id": alert.id,
                        "recipient_hash": hash_pii(responder.id),
                        "error": str(e),
                        "action": "MANUAL_DISPATCH_REQUIRED",
                    }
                )
        return recorded, failed

    def _dispatch_sms(self, alert: Alert, roster: List[Profile], subject_name: str):
        body = compose_sms(alert, subject_name)
        futures = [
            self._executor.submit(self._send_sms, alert, responder, body)
            for responder in roster
            if responder.phone
        ]
        if not futures:
            return 0, 0, 0

        done, not_done = wait(futures, timeout=self.config.sms_dispatch_wait_seconds)
        sent = sum(1 for f in done if f.result())
        failed = len(done) - sent

        if not_done:
            logger.warning(
                "NOTIFICATION_SMS_STILL_PENDING",
                extra={
                    "alert_id": alert.id,
                    "pending": len(not_done),
                    "waited_seconds": self.config.sms_dispatch_wait_seconds,
                }
            )
        return sent, failed, len(not_done)

    def _send_sms(self, alert: Alert, responder: Profile, body: str) -> bool:
        """Send one SMS with retry on timeout. Never raises."""
        attempts = max(1, self.config.sms_max_attempts)
        for attempt in range(1, attempts + 1):
            try:
                message_id = self.sms_transport.send(responder.phone, body)
            except requests.Timeout:
                logger.warning(
                    "NOTIFICATION_SMS_TIMEOUT",
                    extra={
                        "alert_id": alert.id,
                        "recipient_hash": hash_pii(responder.id),
                        "attempt": attempt,
                        "max_attempts": attempts,
                    }
                )
                continue
            except Exception as e:
                logger.critical(
                    "NOTIFICATION_SMS_FAILED",
                    extra={
                        "alert_id": alert.id,
                        "recipient_hash": hash_pii(responder.id),
                        "error": str(e),
                        "error_type": type(e).__name__,
                    }
                )
                return False

            logger.info(
                "NOTIFICATION_SMS_SENT",
                extra={
                    "alert_id": alert.id,
                    "recipient_hash": hash_pii(responder.id),
                    "message_id": message_id,
                }
            )
            return True

        logger.critical(
            "NOTIFICATION_SMS_FAILED",
            extra={
                "alert_id": alert.id,
                "recipient_hash": hash_pii(responder.id),
                "error": "timeout",
                "attempts": attempts,
            }
        )
        return False
