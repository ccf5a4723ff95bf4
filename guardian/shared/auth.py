"""Identity gate: bearer token to ``(user_id, role)``.

Session issuance lives outside the core. Tokens are looked up in the
``sessions`` table written by the authentication service and the role
comes from the caller's profile.
"""
import logging
from typing import Optional

from guardian.shared.database import Store, eq
from guardian.shared.database.records import ProfileRepository
from guardian.shared.errors import Unauthorized
from guardian.shared.models import Principal
from guardian.shared.utils import hash_pii, parse_timestamp, utcnow

logger = logging.getLogger(__name__)


def bearer_token(header_value: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer ...`` header."""
    if not header_value:
        return None
    scheme, _, token = header_value.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class TokenIdentityResolver:
    """Resolves bearer tokens against the sessions table."""

    def __init__(self, store: Store):
        self.store = store
        self.profiles = ProfileRepository(store)

    def resolve(self, authorization_header: Optional[str]) -> Principal:
        """Resolve a request's principal.
        
        Raises:
            Unauthorized: Missing, unknown or expired token, or no profile
        """
        token = bearer_token(authorization_header)
        if token is None:
            raise Unauthorized("Unauthorized")

        sessions = self.store.query("sessions", [eq("token", token)], limit=1)
        if not sessions:
            logger.warning("AUTH_TOKEN_UNKNOWN")
            raise Unauthorized("Unauthorized")

        session = sessions[0]
        expires_at = parse_timestamp(session.get("expires_at"))
        if expires_at is not None and expires_at <= utcnow():
            logger.info(
                "AUTH_TOKEN_EXPIRED",
                extra={"user_id_hash": hash_pii(session["user_id"])}
            )
            raise Unauthorized("Unauthorized")

        profile = self.profiles.find_by_id(session["user_id"])
        if profile is None or not profile.is_active:
            logger.warning(
                "AUTH_PROFILE_UNAVAILABLE",
                extra={"user_id_hash": hash_pii(session["user_id"])}
            )
            raise Unauthorized("Unauthorized")

        return Principal(user_id=profile.id, role=profile.role)
