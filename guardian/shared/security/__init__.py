"""Security primitives shared by services."""
from .duress_hash import hash_duress_secret, needs_rehash, verify_duress_secret

__all__ = ["hash_duress_secret", "needs_rehash", "verify_duress_secret"]
