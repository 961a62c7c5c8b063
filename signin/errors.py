"""
Service error taxonomy.

Services raise these; the exception handlers in ``signin.main`` translate
them to JSON responses of the form::

    {"error": "...", "message": "...", "code": "...", "fieldErrors": {...}}
"""

from typing import Dict, Optional


class SigninError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500
    code = "internal"

    def __init__(self, message: str = "internal error"):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "message": self.message, "code": self.code}


class NotFoundError(SigninError):
    status_code = 404
    code = "not_found"


class UnauthorizedError(SigninError):
    status_code = 401
    code = "unauthorized"


class ForbiddenError(SigninError):
    status_code = 403
    code = "forbidden"


class InvalidInputError(SigninError):
    """Malformed input. ``field_errors`` maps a field name to its message."""

    status_code = 400
    code = "invalid_input"

    def __init__(self, message: str, field_errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.field_errors = field_errors or {}

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.field_errors:
            body["fieldErrors"] = self.field_errors
        return body


class ConflictError(SigninError):
    status_code = 409
    code = "conflict"


class UpstreamError(SigninError):
    """The directory provider or blob store failed or returned garbage."""

    status_code = 502
    code = "upstream"


class InternalError(SigninError):
    pass
