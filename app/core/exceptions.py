"""
Domain exceptions for the report lifecycle.

Services raise these; the handlers registered in app.main turn them into
`{"success": false, "message": ...}` responses with the mapped status code.
"""

from typing import Optional


class WasteServiceError(Exception):
    """Base class for every error the service reports to callers."""

    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(WasteServiceError):
    """Malformed input or an unknown enum value."""

    status_code = 400


class ConflictError(WasteServiceError):
    """
    The request is well-formed but the report's current state blocks it.

    `holder` names the actor currently blocking the request, when there is one.
    """

    status_code = 400

    def __init__(self, detail: str, holder: Optional[str] = None):
        super().__init__(detail)
        self.holder = holder


class InvalidTransitionError(ConflictError):
    """The (current, target) status pair is not in the transition table."""


class AuthError(WasteServiceError):
    """Missing, malformed or expired credential."""

    status_code = 401


class ForbiddenError(AuthError):
    """Authenticated, but the role or ownership check failed."""

    status_code = 403


class NotFoundError(WasteServiceError):
    status_code = 404


class StorageError(WasteServiceError):
    """The datastore or blob backend is unavailable. Callers may retry."""

    status_code = 500
