"""Shared utilities for the Guardian platform."""
from .clock import isoformat, parse_timestamp, utcnow
from .pii import configure_pii_salt, hash_pii

__all__ = ["configure_pii_salt", "hash_pii", "utcnow", "parse_timestamp", "isoformat"]
