# Overview: Domain error taxonomy shared by the attendance services and routes.

"""
Attendance Errors

All errors are caller-visible. Services raise them; routes translate them to
HTTP responses using ``http_status``. The engine never retries these itself.
"""


class AttendanceError(ValueError):
    """Base class for attendance domain errors."""
    http_status = 400


class ValidationError(AttendanceError):
    """400-level input problem (missing field, bad timestamp, clockOut < clockIn)."""
    http_status = 400


class AlreadyClockedInError(AttendanceError):
    """Employee already has an open entry."""
    http_status = 400


class NotClockedInError(AttendanceError):
    """Employee has no open entry to close."""
    http_status = 400


class NotFoundError(AttendanceError):
    """Unknown entry or employee id."""
    http_status = 404


class ConflictError(AttendanceError):
    """409-level optimistic-lock loss or uniqueness race."""
    http_status = 409


class AuthorizationError(AttendanceError):
    """Caller lacks the admin role required for an override."""
    http_status = 403
