"""Domain error taxonomy shared by services and controllers.

Every error carries a stable ``kind`` so API callers can branch on it without
parsing messages, plus the HTTP status the controllers translate it to.
"""

from __future__ import annotations


class CheckInError(Exception):
    """Base class for all expected business failures."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_detail(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message}


class ValidationError(CheckInError):
    """Malformed or missing input."""

    kind = "validation_error"
    status_code = 400


class NotFoundError(CheckInError):
    """A referenced participant, room or operator does not exist."""

    kind = "not_found"
    status_code = 404


class ConflictError(CheckInError):
    """A uniqueness rule rejected the request."""

    kind = "conflict"
    status_code = 409


class PreconditionFailedError(CheckInError):
    """A business rule rejected an otherwise well-formed request."""

    kind = "precondition_failed"
    status_code = 422


class AuthError(CheckInError):
    """Missing, invalid or expired credential, or insufficient role."""

    kind = "auth_error"
    status_code = 401


class RateLimitedError(CheckInError):
    kind = "rate_limited"
    status_code = 429


class UpstreamError(CheckInError):
    """The external identity directory failed or is not configured."""

    kind = "upstream_error"
    status_code = 502
