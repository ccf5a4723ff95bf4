"""Duress secret hashing.

Duress passwords are stored as salted argon2id hashes. Verification goes
through argon2 (constant-time digest comparison) even when there is no
usable secret, so a missing configuration costs the same work as a wrong
password.
"""
import logging
from typing import Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

logger = logging.getLogger(__name__)

_hasher = PasswordHasher()

# Verified against when a user has no usable secret
_DUMMY_HASH = _hasher.hash("guardian-duress-placeholder")


def hash_duress_secret(password: str) -> str:
    """Hash a duress password for storage.
    
    Raises:
        ValueError: If the password is empty
    """
    if not password:
        raise ValueError("Duress password must not be empty")
    return _hasher.hash(password)


def verify_duress_secret(password: str, stored_hash: Optional[str]) -> bool:
    """Check a supplied password against a stored argon2 hash.
    
    Args:
        password: Password supplied by the caller
        stored_hash: Stored hash, or None when no secret is configured
        
    Returns:
        True only if a secret is configured and the password matches
    """
    target = stored_hash or _DUMMY_HASH
    try:
        matched = _hasher.verify(target, password or "")
    except VerifyMismatchError:
        return False
    except (InvalidHashError, VerificationError) as e:
        logger.error(
            "DURESS_SECRET_VERIFY_ERROR",
            extra={"error_type": type(e).__name__}
        )
        return False
    return matched and stored_hash is not None


def needs_rehash(stored_hash: str) -> bool:
    return _hasher.check_needs_rehash(stored_hash)
