"""
Domain exception hierarchy for the future-state engine.

Services raise these; the API layer maps each one to a stable error code and
HTTP status through a single handler registered in ``src.main``.

Usage:
    from src.core.exceptions import NotFoundError, LockedError

    raise NotFoundError(resource="Lane", resource_id=lane_id)
    raise LockedError(version_id)
"""
from typing import Any, Optional


class FutureStateError(Exception):
    """Base class. ``code`` is the stable identifier surfaced to callers."""

    code: str = "error"
    status_code: int = 500

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(FutureStateError):
    """Missing or malformed input, raised before any write happens.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    code = "validation_error"
    status_code = 400


class NotFoundError(FutureStateError):
    """A referenced version, node, lane, edge, option or context does not exist."""

    code = "not_found"
    status_code = 404

    def __init__(self, resource: str, resource_id: Any = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" {resource_id}"
        msg += " not found"
        super().__init__(msg)


class ConflictError(FutureStateError):
    """An operation would duplicate a name (or number) within its scope."""

    code = "conflict"
    status_code = 409

    def __init__(self, resource: str, field: str, value: Any = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(f"{resource} with {field}={value!r} already exists")


class LockedError(FutureStateError):
    code = "locked"
    status_code = 423

    def __init__(self, version_id: Any) -> None:
        self.version_id = version_id
        super().__init__(f"Future state version {version_id} is locked and cannot be modified")


class PublishedError(FutureStateError):
    code = "published"
    status_code = 409

    def __init__(self, version_id: Any) -> None:
        self.version_id = version_id
        super().__init__(f"Future state version {version_id} is published and cannot be deleted")


class SoleVersionError(FutureStateError):
    code = "sole_version"
    status_code = 409

    def __init__(self, session_id: Any) -> None:
        self.session_id = session_id
        super().__init__(f"Cannot delete the only version of session {session_id}")


class NotEmptyError(FutureStateError):
    """Lane deletion blocked because nodes still reference the lane name."""

    code = "not_empty"
    status_code = 409

    def __init__(self, lane_name: str, node_count: int) -> None:
        self.lane_name = lane_name
        self.node_count = node_count
        super().__init__(
            f"Lane {lane_name!r} still contains {node_count} step(s). "
            "Move or delete the steps first."
        )


class AgentError(FutureStateError):
    """The design agent failed or returned no usable options."""

    code = "agent_error"
    status_code = 502


class CloneFailedError(FutureStateError):
    """The version clone sequence could not complete; the new version is unusable."""

    code = "clone_failed"
    status_code = 500
