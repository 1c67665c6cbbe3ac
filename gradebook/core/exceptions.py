"""Application errors and the JSON error envelope they render to."""

from typing import Any

from fastapi import HTTPException, status


def error_body(code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    """Build the ``{"success": false, "error": {...}}`` body of every error response."""
    return {"success": False, "error": {"code": code, "message": message, "details": details or {}}}


class AppException(HTTPException):
    """Error raised by services and dependencies.

    Subclasses choose the HTTP status, error code and fallback message through
    class attributes; the handler in ``main`` returns ``detail`` as the body.
    """

    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(status_code=self.http_status, detail=error_body(self.code, self.message, self.details))


class AuthenticationError(AppException):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "AUTH_FAILED"
    default_message = "Authentication failed"


class PermissionDeniedError(AppException):
    """The user's role or subject assignment does not allow the action."""

    http_status = status.HTTP_403_FORBIDDEN
    code = "PERMISSION_DENIED"
    default_message = "Permission denied"

    def __init__(self, message: str | None = None, required_role: str | None = None):
        super().__init__(message, {"required_role": required_role} if required_role else None)


class UploadError(AppException):
    """Rejected or unreadable workbook upload."""

    http_status = status.HTTP_400_BAD_REQUEST
    code = "UPLOAD_FAILED"
    default_message = "Upload failed"


class NotFoundError(AppException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource", identifier: str | None = None):
        super().__init__(f"{resource} not found", {"identifier": identifier} if identifier else None)


class InternalError(AppException):
    """Storage or other server-side failure that aborts the whole call."""
