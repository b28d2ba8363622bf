"""
Error taxonomy for the matching core.

Services raise these; the HTTP layer maps them to status codes through the
handler registered in ``fitmatch.main``. Authentication failures are not part
of this hierarchy and stay ``HTTPException(401)``.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTHORIZATION_ERROR = "AUTHORIZATION_ERROR"
    CONFLICT = "CONFLICT"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class FitMatchError(Exception):
    status_code = 500
    code = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(FitMatchError):
    status_code = 400
    code = ErrorCode.VALIDATION_ERROR

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None) -> None:
        details = dict(details or {})
        if field:
            details["field"] = field
        self.field = field
        super().__init__(message, details)


class AuthorizationError(FitMatchError):
    """Caller is authenticated but not allowed to act on the resource.

    ``reason`` names the invariant that failed so the glue layer can pick a
    response: ``not_matched``, ``not_participant``, ``not_sender`` or
    ``not_admin``.
    """

    status_code = 403
    code = ErrorCode.AUTHORIZATION_ERROR

    def __init__(self, message: str, reason: str, details: dict[str, Any] | None = None) -> None:
        details = dict(details or {})
        details["reason"] = reason
        self.reason = reason
        super().__init__(message, details)


class ConflictError(FitMatchError):
    status_code = 409
    code = ErrorCode.CONFLICT


class NotFoundError(FitMatchError):
    status_code = 404
    code = ErrorCode.NOT_FOUND

    def __init__(self, resource: str, resource_id: str) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found", {"resource": resource, "id": resource_id})
