"""Error taxonomy shared by services and routes.

Every error carries the HTTP status it maps to, a human-readable message for
the response envelope and an optional ``error`` detail. The exception handlers
registered in ``backend.main`` turn them into ``{success, message, error}``
bodies.
"""

from typing import Any

from fastapi import status


class ClinicError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, error: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.error = error


class InvalidRequest(ClinicError):
    """Malformed or missing input."""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(ClinicError):
    """A referenced entity does not exist."""
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(ClinicError):
    """The request would break a uniqueness invariant."""
    status_code = status.HTTP_400_BAD_REQUEST


class StorageError(ClinicError):
    """The database rejected or failed a query."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
