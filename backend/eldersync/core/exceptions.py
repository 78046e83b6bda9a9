"""
Domain exceptions.

Each exception carries the HTTP status it maps to; the handlers registered in
``main.py`` render them as ``{"error": message}``.
"""

from fastapi import status


class ElderSyncError(Exception):
    """Base class for errors surfaced at the HTTP boundary."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class Unauthorized(ElderSyncError):
    """Missing or invalid device or user credential."""

    status_code = status.HTTP_401_UNAUTHORIZED


class NotFound(ElderSyncError):
    """Referenced patient, device or alert does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class BadInput(ElderSyncError):
    """Malformed request body or missing required field."""

    status_code = status.HTTP_400_BAD_REQUEST


class StoreFailure(ElderSyncError):
    """The underlying key-value backend rejected a call."""

    status_code = status.HTTP_502_BAD_GATEWAY
