"""Action dispatch shared by every subsystem endpoint.

Each subsystem exposes one POST endpoint taking ``{"action": ..., ...}``.
Responses are ``{success: true, ...payload}`` with 200, or ``{error}``
with the status the error taxonomy assigns.
"""
import logging
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from flask import jsonify, request

from guardian.shared.errors import GuardianError, ValidationError
from guardian.shared.models import Principal

logger = logging.getLogger(__name__)

ActionResult = Union[Dict[str, Any], Tuple[Dict[str, Any], Dict[str, str]]]
ActionHandler = Callable[[Principal, Dict[str, Any]], ActionResult]


def require_fields(data: Mapping[str, Any], *fields: str, message: Optional[str] = None) -> None:
    """Raise ValidationError unless every field is present and non-empty."""
    missing = [f for f in fields if data.get(f) in (None, "")]
    if missing:
        raise ValidationError(message or f"Missing required field(s): {', '.join(missing)}")


def dispatch_action(
    service: str,
    resolver,
    actions: Mapping[str, ActionHandler],
):
    """Authenticate the request and run the named action.
    
    Args:
        service: Service name used as log event prefix
        resolver: Identity resolver with ``resolve(header) -> Principal``
        actions: Action name to handler
        
    Returns:
        Flask response tuple
    """
    prefix = service.upper().replace("-", "_")
    action = None
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "Request body required"}), 400

        principal = resolver.resolve(request.headers.get("Authorization"))

        action = data.get("action")
        handler = actions.get(action) if isinstance(action, str) else None
        if handler is None:
            return jsonify({"error": "Invalid action"}), 400

        result = handler(principal, data)
        headers: Dict[str, str] = {}
        if isinstance(result, tuple):
            result, headers = result

        body = {"success": True}
        body.update(result)
        return jsonify(body), 200, headers

    except GuardianError as e:
        logger.warning(
            f"{prefix}_REJECTED",
            extra={
                "action": action,
                "status": e.status_code,
                "error_type": type(e).__name__,
            }
        )
        return jsonify({"error": e.message}), e.status_code

    except Exception as e:
        logger.error(
            f"{prefix}_ERROR",
            extra={"action": action, "error": str(e), "error_type": type(e).__name__}
        )
        return jsonify({"error": "Internal server error"}), 500
