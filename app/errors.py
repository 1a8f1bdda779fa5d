"""Domain errors raised by services and rendered as JSON by app.main."""
from __future__ import annotations

from typing import Any

INVALID_LINK_MESSAGE = "Invalid or expired link"


class ServiceError(Exception):
    status_code = 400

    def __init__(self, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, **self.extra}


class Unauthorized(ServiceError):
    status_code = 401


class Forbidden(ServiceError):
    status_code = 403


class NotFound(ServiceError):
    status_code = 404


class InvalidState(ServiceError):
    """Action attempted against a document in the wrong lifecycle stage."""
    status_code = 409


class Locked(InvalidState):
    """Write attempted against a validated (write-once) questionnaire."""


class Conflict(ServiceError):
    status_code = 409


class ValidationError(ServiceError):
    status_code = 400


def invalid_link() -> NotFound:
    # Same error for unknown, revoked and expired tokens.
    return NotFound(INVALID_LINK_MESSAGE, code="INVALID_LINK")
