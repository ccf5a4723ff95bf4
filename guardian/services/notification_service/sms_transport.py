"""SMS transport over the Twilio REST API."""
import logging
from abc import ABC, abstractmethod
from typing import Optional

import requests

from .config import SmsConfig

logger = logging.getLogger(__name__)


class SmsDeliveryError(Exception):
    """Provider rejected or failed the message."""
    pass


class SmsTransport(ABC):
    """Notification-transport collaborator for the SMS channel."""

    @abstractmethod
    def send(self, to_number: str, body: str) -> str:
        """Send one SMS and return the provider message id.
        
        Raises:
            requests.Timeout: Provider did not answer in time (retryable)
            SmsDeliveryError: Provider rejected the message
        """


class TwilioSmsTransport(SmsTransport):
    """Sends SMS through Twilio's Messages resource."""

    def __init__(self, config: SmsConfig, session: Optional[requests.Session] = None):
        if not config.enabled:
            raise ValueError("Twilio credentials are not fully configured")
        self.config = config
        self.session = session or requests.Session()
        self.url = f"{config.api_base_url}/Accounts/{config.account_sid}/Messages.json"

        logger.info(
            "TWILIO_TRANSPORT_INITIALIZED",
            extra={"timeout_seconds": config.timeout_seconds}
        )

    def send(self, to_number: str, body: str) -> str:
        # Ensure E.164 format
        if not to_number.startswith("+"):
            to_number = f"+{to_number}"

        response = self.session.post(
            self.url,
            data={
                "From": self.config.from_number,
                "To": to_number,
                "Body": body,
            },
            auth=(self.config.account_sid, self.config.auth_token),
            timeout=self.config.timeout_seconds,
        )

        if response.status_code not in (200, 201):
            raise SmsDeliveryError(
                f"Twilio returned {response.status_code}: {response.text[:200]}"
            )

        return response.json().get("sid", "unknown")


def build_sms_transport(config: SmsConfig) -> Optional[SmsTransport]:
    """Transport for the configured provider, or None when SMS is disabled."""
    if not config.enabled:
        logger.info(
            "SMS_TRANSPORT_DISABLED",
            extra={"reason": "twilio_credentials_incomplete"}
        )
        return None
    return TwilioSmsTransport(config)
