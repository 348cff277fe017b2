"""
Domain error taxonomy for agent resource assignment.

Every error carries a machine-readable ``code``, the HTTP status it maps to and
a human-readable message. The error handling middleware turns them into the
standard ``{"error": {...}}`` envelope.
"""

from typing import Any, Optional

from fastapi import status


class AssignmentError(Exception):
    """Base class for assignment errors surfaced to callers."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "ASSIGNMENT_ERROR"
    default_message: str = "Agent assignment request failed"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class NotFoundError(AssignmentError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    default_message = "Resource not found"


class AgentNotFoundError(NotFoundError):
    """The target agent does not resolve to an active agent."""

    default_message = "Active agent not found"


class AssignmentNotFoundError(NotFoundError):
    """The agent has no assignment record."""

    default_message = "Agent assignment not found"


class InvalidAssignmentRequest(AssignmentError):
    """Malformed input detected before any I/O."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "VALIDATION_ERROR"
    default_message = "Invalid agent assignment request"


class NoActiveUsersError(AssignmentError):
    """Input was well-formed but nothing was left to assign after filtering."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "NO_ACTIVE_USERS"
    default_message = "No active users found to assign"


class ConcurrentModificationError(AssignmentError):
    """Another request changed the same assignment or claimed the same resource."""

    status_code = status.HTTP_409_CONFLICT
    code = "CONCURRENT_MODIFICATION"
    default_message = (
        "The assignment was modified by another request. Retry the operation."
    )
