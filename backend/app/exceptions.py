"""Custom exception classes for Volunteer Connect.

All exceptions render in the VC error format:
{
    "error": {
        "code": "VC_ERROR_CODE",
        "message": "Human-readable message",
        "details": {}  # optional
    }
}

Domain errors carry no HTTP status. The mapping to status codes lives
in the HTTP layer (app.main) only.
"""

from __future__ import annotations

from typing import Any


class VCBaseError(Exception):
    """Base exception for Volunteer Connect."""

    def __init__(
        self,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "error": {
                "code": self.code,
                "message": self.message,
            }
        }
        if self.details:
            result["error"]["details"] = self.details
        return result


class NotFoundError(VCBaseError):
    """Requested entity does not exist."""

    def __init__(self, entity: str, message: str | None = None) -> None:
        super().__init__(
            code=f"{entity.upper()}_NOT_FOUND",
            message=message or f"{entity.replace('_', ' ').capitalize()} not found",
        )
        self.entity = entity


class ValidationError(VCBaseError):
    """Input validation error."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            details=details,
        )


class UpstreamError(VCBaseError):
    """A collaborator (database, inference API) failed."""

    def __init__(self, service: str, message: str = "Service unavailable") -> None:
        super().__init__(
            code=f"{service.upper()}_UPSTREAM_ERROR",
            message=message,
            details={"service": service},
        )
        self.service = service


class AuthenticationError(VCBaseError):
    """Missing or invalid credentials."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            code="AUTHENTICATION_FAILED",
            message=message,
        )


class PermissionDeniedError(VCBaseError):
    """Authenticated user may not perform this action."""

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(
            code="PERMISSION_DENIED",
            message=message,
        )


class ConflictError(VCBaseError):
    """Operation conflicts with existing state."""

    def __init__(self, message: str) -> None:
        super().__init__(
            code="CONFLICT",
            message=message,
        )


class RateLimitError(VCBaseError):
    """Application rate limit exceeded."""

    def __init__(self, limit_type: str, retry_after: int = 60) -> None:
        super().__init__(
            code="RATE_LIMIT_EXCEEDED",
            message=f"Rate limit exceeded for {limit_type}. Try again later.",
            details={"retry_after_seconds": retry_after, "limit_type": limit_type},
        )
