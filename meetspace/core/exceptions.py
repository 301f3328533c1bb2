"""
Domain errors for Meetspace.
Each error carries the HTTP status it maps to and a machine-readable code.
"""

from typing import Any, Dict, Optional


class MeetspaceError(Exception):
    """Base class for errors rendered as structured JSON responses."""

    status_code = 400
    default_code = "BAD_REQUEST"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.code,
            "error_message": self.message,
            "details": self.details,
        }


class ValidationFailed(MeetspaceError):
    status_code = 400
    default_code = "VALIDATION_FAILED"


class AuthenticationRequired(MeetspaceError):
    status_code = 401
    default_code = "UNAUTHORIZED"


class PermissionDenied(MeetspaceError):
    status_code = 403
    default_code = "FORBIDDEN"


class ResourceNotFound(MeetspaceError):
    status_code = 404
    default_code = "NOT_FOUND"


class ConflictError(MeetspaceError):
    status_code = 409
    default_code = "CONFLICT"


class ConfigurationError(MeetspaceError):
    status_code = 500
    default_code = "CONFIGURATION_ERROR"


class ProviderError(MeetspaceError):
    """An upstream provider call failed or returned an error status."""

    status_code = 502
    default_code = "PROVIDER_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        upstream_status: Optional[int] = None
    ):
        super().__init__(message, code, details)
        self.upstream_status = upstream_status
