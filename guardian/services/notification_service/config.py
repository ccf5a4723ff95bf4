"""Notification fan-out configuration.

The SMS leg is enabled only when all three Twilio credentials are present;
a partial configuration disables it without failing any request.
"""
import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SmsConfig:
    """Twilio credentials and per-call bounds."""
    account_sid: Optional[str] = None
    auth_token: Optional[str] = None
    from_number: Optional[str] = None
    
    # Each HTTP call to the provider is bounded by this timeout
    timeout_seconds: float = 5.0

    api_base_url: str = "https://api.twilio.com/2010-04-01"
    
    @property
    def enabled(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)
    
    @classmethod
    def from_env(cls) -> "SmsConfig":
        """Environment variables:
            TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_PHONE_NUMBER
            SMS_TIMEOUT_SECONDS (default 5)
        """
        return cls(
            account_sid=os.getenv("TWILIO_ACCOUNT_SID") or None,
            auth_token=os.getenv("TWILIO_AUTH_TOKEN") or None,
            from_number=os.getenv("TWILIO_PHONE_NUMBER") or None,
            timeout_seconds=float(os.getenv("SMS_TIMEOUT_SECONDS", "5")),
        )


@dataclass(frozen=True)
class FanoutConfig:
    """Bounds on how long a triggering request waits for delivery."""
    
    # Upper bound on the wait for the SMS leg; push rows are always
    # written before notify() returns
    sms_dispatch_wait_seconds: float = 10.0
    
    sms_max_workers: int = 8

    # Provider timeouts are retried; other failures are not
    sms_max_attempts: int = 2

    @classmethod
    def from_env(cls) -> "FanoutConfig":
        """Environment variables:
            SMS_DISPATCH_WAIT_SECONDS (default 10)
            SMS_MAX_WORKERS (default 8)
            SMS_MAX_ATTEMPTS (default 2)
        """
        return cls(
            sms_dispatch_wait_seconds=float(os.getenv("SMS_DISPATCH_WAIT_SECONDS", "10")),
            sms_max_workers=int(os.getenv("SMS_MAX_WORKERS", "8")),
            sms_max_attempts=int(os.getenv("SMS_MAX_ATTEMPTS", "2")),
        )
