"""Decoy-mode configuration and the duress validation flow.

One configuration per user. The duress password is hashed on the way in
and never leaves the service. The fake interface is explicit session
state: it stays up until deactivated, or until its TTL lapses when
FAKE_INTERFACE_TTL_SECONDS is set.
"""
import logging
import os
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Dict, Optional

from guardian.shared.database.records import DuressConfigRepository
from guardian.shared.errors import NotFound, Unauthorized, ValidationError
from guardian.shared.models import ActivationGesture, DecoyAppType, DuressConfig, GeoPoint
from guardian.shared.security import hash_duress_secret
from guardian.shared.utils import hash_pii, utcnow
from .verifier import DuressVerifier

if TYPE_CHECKING:
    from guardian.services.alert_engine.lifecycle import AlertLifecycleManager

logger = logging.getLogger(__name__)

DECOY_ALERT_MESSAGE = "Silent duress alert triggered via decoy mode"
INVALID_CREDENTIALS = "Invalid duress credentials"
NOT_CONFIGURED = "Decoy mode not configured"


@dataclass(frozen=True)
class DuressSettings:
    """Decoy-mode settings."""
    
    # None keeps the fake interface up until explicitly deactivated
    fake_interface_ttl_seconds: Optional[int] = None

    @classmethod
    def from_env(cls) -> "DuressSettings":
        """Environment variables:
            FAKE_INTERFACE_TTL_SECONDS: Optional fake interface lifetime
        """
        ttl = os.getenv("FAKE_INTERFACE_TTL_SECONDS")
        return cls(fake_interface_ttl_seconds=int(ttl) if ttl else None)


@dataclass(frozen=True)
class DuressValidation:
    """Response shape of a successful validation."""
    fake_interface_active: bool
    silent_alert_triggered: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": True,
            "fake_interface_active": self.fake_interface_active,
            "silent_alert_triggered": self.silent_alert_triggered,
        }


class DecoyConfigService:
    """Manages a user's decoy configuration and validates duress passwords."""

    def __init__(
        self,
        configs: DuressConfigRepository,
        verifier: DuressVerifier,
        lifecycle: "AlertLifecycleManager",
        settings: Optional[DuressSettings] = None,
    ):
        self.configs = configs
        self.verifier = verifier
        self.lifecycle = lifecycle
        self.settings = settings or DuressSettings()

    def setup(
        self,
        user_id: str,
        duress_password: Optional[str],
        enabled: Optional[bool] = None,
        app_type: Optional[str] = None,
        activation_gesture: Optional[str] = None,
        silent_alert_enabled: Optional[bool] = None,
    ) -> DuressConfig:
        """Create or replace the user's configuration.
        
        Omitted options fall back to their defaults, also when replacing.
        
        Raises:
            ValidationError: No password, or unknown app type/gesture
        """
        if not duress_password:
            raise ValidationError("Duress password is required")

        values = {
            "enabled": True if enabled is None else bool(enabled),
            "app_type": _parse_app_type(app_type or DecoyAppType.CALCULATOR.value),
            "activation_gesture": _parse_gesture(
                activation_gesture or ActivationGesture.TRIPLE_TAP.value
            ),
            "silent_alert_enabled": True if silent_alert_enabled is None else bool(silent_alert_enabled),
            "duress_password_secret": hash_duress_secret(duress_password),
        }

        existing = self.configs.find_for_user(user_id)
        if existing is None:
            config = self.configs.add(DuressConfig(
                id=str(uuid.uuid4()),
                user_id=user_id,
                **values,
            ))
        else:
            config = self.configs.update_for_user(user_id, _to_columns(values))

        logger.info(
            "DECOY_CONFIG_SAVED",
            extra={
                "user_id_hash": hash_pii(user_id),
                "replaced": existing is not None,
                "enabled": config.enabled,
            }
        )
        return config

    def update(self, user_id: str, changes: Dict[str, Any]) -> DuressConfig:
        """Apply a partial update. A new password is re-hashed.
        
        Raises:
            NotFound: No configuration to update
        """
        values: Dict[str, Any] = {}
        if changes.get("enabled") is not None:
            values["enabled"] = bool(changes["enabled"])
        if changes.get("app_type"):
            values["app_type"] = _parse_app_type(changes["app_type"])
        if changes.get("activation_gesture"):
            values["activation_gesture"] = _parse_gesture(changes["activation_gesture"])
        if changes.get("silent_alert_enabled") is not None:
            values["silent_alert_enabled"] = bool(changes["silent_alert_enabled"])
        if changes.get("duress_password"):
            values["duress_password_secret"] = hash_duress_secret(changes["duress_password"])

        config = self.configs.update_for_user(user_id, _to_columns(values))
        if config is None:
            raise NotFound(NOT_CONFIGURED)
        return config

    def get_config(self, user_id: str) -> Optional[DuressConfig]:
        return self.configs.find_for_user(user_id)

    def activate_fake_interface(self, user_id: str) -> DuressConfig:
        expires_at = None
        if self.settings.fake_interface_ttl_seconds:
            expires_at = utcnow() + timedelta(seconds=self.settings.fake_interface_ttl_seconds)

        config = self.configs.update_for_user(user_id, {
            "fake_interface_active": True,
            "fake_interface_expires_at": expires_at,
        })
        if config is None:
            raise NotFound(NOT_CONFIGURED)
        return config

    def deactivate_fake_interface(self, user_id: str) -> DuressConfig:
        config = self.configs.update_for_user(user_id, {
            "fake_interface_active": False,
            "fake_interface_expires_at": None,
        })
        if config is None:
            raise NotFound(NOT_CONFIGURED)
        return config

    def validate_duress(
        self,
        user_id: str,
        duress_password: Optional[str],
        location: Optional[Dict[str, Any]] = None,
    ) -> DuressValidation:
        """Validate a duress password typed into the decoy app.
        
        On a match: raise a silent duress alert (when silent alerting is
        enabled) and put up the fake interface.
        
        Raises:
            ValidationError: No password supplied, or a malformed location
                (checked before the password)
            Unauthorized: Same message for every kind of failure
            
        Logs:
            - DECOY_DURESS_VALIDATED: On a match (critical)
        """
        if not duress_password:
            raise ValidationError("Duress password is required")
        point = GeoPoint.from_payload(location)

        outcome = self.verifier.verify(user_id, duress_password)
        if not outcome.matched:
            raise Unauthorized(INVALID_CREDENTIALS)

        silent_alert = outcome.config.silent_alert_enabled
        if silent_alert:
            self.lifecycle.escalate_duress(
                user_id,
                outcome.config,
                point,
                message=DECOY_ALERT_MESSAGE,
            )

        config = self.activate_fake_interface(user_id)

        logger.critical(
            "DECOY_DURESS_VALIDATED",
            extra={
                "user_id_hash": hash_pii(user_id),
                "silent_alert_triggered": silent_alert,
            }
        )
        return DuressValidation(
            fake_interface_active=config.fake_interface_active,
            silent_alert_triggered=silent_alert,
        )


def _parse_app_type(value: str) -> DecoyAppType:
    try:
        return DecoyAppType(value)
    except ValueError:
        raise ValidationError(
            f"App type must be one of: {', '.join(t.value for t in DecoyAppType)}"
        )


def _parse_gesture(value: str) -> ActivationGesture:
    try:
        return ActivationGesture(value)
    except ValueError:
        raise ValidationError(
            f"Activation gesture must be one of: {', '.join(g.value for g in ActivationGesture)}"
        )


def _to_columns(values: Dict[str, Any]) -> Dict[str, Any]:
    columns = dict(values)
    for key in ("app_type", "activation_gesture"):
        if key in columns:
            columns[key] = columns[key].value
    return columns
