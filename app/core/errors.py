"""LeadLaunch — Application Error Taxonomy.

Every error the API returns on purpose is one of these. The handlers
registered in ``app.main`` render them as ``{"error": ..., "details": ...}``.
"""

from typing import Any, Optional


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict:
        body: dict = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(AppError):
    """Malformed or missing input."""

    status_code = 400


class AuthError(AppError):
    """Bad credentials, or a missing / invalid / expired bearer token."""

    status_code = 401


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    """Duplicate registration."""

    status_code = 409


class UpstreamError(AppError):
    """The Graph API call failed; ``details`` carries the remote body."""

    status_code = 500
