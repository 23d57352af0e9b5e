from __future__ import annotations


class PortalError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(PortalError):
    status_code = 400


class NotAuthenticated(PortalError):
    status_code = 401


class PermissionDenied(PortalError):
    status_code = 403


class NotFound(PortalError):
    status_code = 404


class Conflict(PortalError):
    status_code = 409


class TooManyRequests(PortalError):
    status_code = 429
