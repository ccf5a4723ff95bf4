"""User identifiers never reach logs in clear text.

An alert subject may be under duress, and log aggregation is readable by
operators who are not responders. Every user id, recipient id and phone
number goes through ``hash_pii`` before it is logged.
"""
import hashlib
import logging
from typing import Optional

logger = logging.getLogger(__name__)

MIN_SALT_LENGTH = 32

_salt: Optional[bytes] = None


def configure_pii_salt(salt: str) -> None:
    """Set the process-wide salt (PII_HASH_SALT).

    Raises:
        ValueError: Salt shorter than MIN_SALT_LENGTH
    """
    global _salt
    if not salt or len(salt) < MIN_SALT_LENGTH:
        logger.critical(
            "PII_SALT_REJECTED",
            extra={"min_length": MIN_SALT_LENGTH}
        )
        raise ValueError(f"PII salt must be at least {MIN_SALT_LENGTH} characters")
    _salt = salt.encode()


def hash_pii(value: Optional[str]) -> Optional[str]:
    """Salted SHA-256 hex digest of an identifier; None passes through.

    Raises:
        RuntimeError: configure_pii_salt() has not run
    """
    if value is None:
        return None
    if _salt is None:
        raise RuntimeError("PII salt not configured")
    return hashlib.sha256(_salt + str(value).encode()).hexdigest()
