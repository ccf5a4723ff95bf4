"""Duress Service: covert password verification and decoy-mode config.

A duress password typed on a seized or coerced device raises a silent
critical alert while the device shows an innocuous fake interface.
Failures never reveal whether duress mode is configured.
"""

from .config_service import DecoyConfigService, DuressSettings, DuressValidation
from .verifier import DuressOutcome, DuressVerifier

__all__ = [
    "DecoyConfigService",
    "DuressSettings",
    "DuressValidation",
    "DuressOutcome",
    "DuressVerifier",
]
