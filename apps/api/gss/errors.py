"""
GSS Error Taxonomy — every failure the API reports to a caller.

Each exception carries the HTTP status it maps to. main.py installs a
single exception handler that turns any GssError into ``{"error": msg}``
(NotFound is the exception: the admin shell answers it in plain text).
"""


class GssError(Exception):
    """Base class. ``message`` is passed to the client verbatim."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(GssError):
    """Missing or empty required field, or malformed request body."""

    status_code = 400


class AuthError(GssError):
    """Missing credential (401) or invalid credential (403)."""

    status_code = 401

    @classmethod
    def missing(cls, message: str = "Unauthorized") -> "AuthError":
        return cls(message, 401)

    @classmethod
    def invalid(cls, message: str) -> "AuthError":
        return cls(message, 403)


class MethodNotAllowed(GssError):
    status_code = 405


class StoreError(GssError):
    """Any key-value backend failure. The backend's message is kept as-is."""

    status_code = 500


class NotFound(GssError):
    status_code = 404
