"""Shared plumbing for the action-dispatch HTTP endpoints."""
from .actions import ActionResult, dispatch_action, require_fields

__all__ = ["ActionResult", "dispatch_action", "require_fields"]
