"""Duress password verification.

A seized device must not reveal whether duress mode exists. Every
failure (no configuration, disabled configuration, wrong password)
produces the same outcome and costs one argon2 verification.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from guardian.shared.database.records import DuressConfigRepository
from guardian.shared.models import DuressConfig
from guardian.shared.security import verify_duress_secret
from guardian.shared.utils import hash_pii

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DuressOutcome:
    """Result of a verification.
    
    ``config`` is only populated on a match so callers cannot branch on
    why a verification failed.
    """
    matched: bool
    config: Optional[DuressConfig] = None


class DuressVerifier:
    """Checks a supplied password against the user's duress secret."""

    def __init__(self, configs: DuressConfigRepository):
        self.configs = configs

    def verify(self, user_id: str, supplied_password: Optional[str]) -> DuressOutcome:
        """Verify a duress password.
        
        Args:
            user_id: Owner of the configuration
            supplied_password: Password typed by the user
            
        Returns:
            DuressOutcome; matched only for an enabled config whose
            secret matches
            
        Logs:
            - DURESS_VERIFICATION_FAILED: Any non-match (reason kept server-side)
        """
        config = self.configs.find_for_user(user_id)
        usable = config is not None and config.enabled

        stored_hash = config.duress_password_secret if usable else None
        matched = verify_duress_secret(supplied_password or "", stored_hash)

        if not matched:
            if config is None:
                reason = "not_configured"
            elif not config.enabled:
                reason = "disabled"
            else:
                reason = "mismatch"
            logger.warning(
                "DURESS_VERIFICATION_FAILED",
                extra={"user_id_hash": hash_pii(user_id), "reason": reason}
            )
            return DuressOutcome(matched=False)

        return DuressOutcome(matched=True, config=config)
