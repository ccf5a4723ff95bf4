"""Error taxonomy shared by every service.

Each error carries the HTTP status the action endpoints answer with.
Validation and authorization errors are raised before any write, so a
caller that sees one of them knows nothing was persisted.
"""


class GuardianError(Exception):
    """Base exception for expected, caller-visible failures."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(GuardianError):
    """Missing or malformed required field."""
    status_code = 400


class Unauthorized(GuardianError):
    """Missing or invalid principal, or rejected duress credentials."""
    status_code = 401


class Forbidden(GuardianError):
    """Authenticated but not permitted for this resource."""
    status_code = 403


class NotFound(GuardianError):
    """Resource or configuration absent."""
    status_code = 404


class DependencyFailure(GuardianError):
    """Persistence or transport failure."""
    status_code = 500
