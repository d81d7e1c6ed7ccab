"""Service-layer exceptions.

Services raise these; the API routers translate them to HTTP status
codes.  ``SinkUnavailable`` is handled inside the notification
dispatcher and never reaches a router.
"""

from __future__ import annotations


class ComplianceError(Exception):
    """Base exception for compliance tracker service errors."""


class Unauthorized(ComplianceError):
    """Missing, unknown, or revoked bearer token, or bad credentials."""


class Conflict(ComplianceError):
    """Signup with an email that is already registered."""


class NotFound(ComplianceError):
    """Target record is absent or owned by another user."""


class ValidationFailure(ComplianceError):
    """A required field is missing or a field value is not allowed."""


class SinkUnavailable(ComplianceError):
    """The notification transport is not configured or failed."""


class StorageError(ComplianceError):
    """A collection could not be read or written."""
