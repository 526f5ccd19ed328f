"""
HTTP exception types for the API server.

Terminal-level failures are sandterm.exceptions.TerminalError subclasses and
carry their own status codes; these cover the transport concerns.
"""

from typing import Optional


class APIError(Exception):
    """Base exception for API errors."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, request_id: Optional[str] = None) -> None:
        self.message = message
        self.request_id = request_id
        super().__init__(message)


class AuthenticationError(APIError):
    """Invalid or missing authentication credentials."""

    status_code = 401
    code = "authentication_error"


class ValidationError(APIError):
    """Request validation failed."""

    status_code = 400
    code = "validation_error"
