"""
Custom exception classes for better error handling.

Business-rule violations (conflicts, closed days, wrong room) are reported as
structured validation results, not exceptions. These types cover
infrastructure failures and malformed input.
"""


class DatabaseError(Exception):
    """Base exception for database operations."""

    pass


class ServiceNotFoundError(DatabaseError):
    """Raised when a service is not found."""

    pass


class StaffNotFoundError(DatabaseError):
    """Raised when a staff member is not found."""

    pass


class RoomNotFoundError(DatabaseError):
    """Raised when a room is not found."""

    pass


class BookingNotFoundError(DatabaseError):
    """Raised when a booking is not found."""

    pass


class ScheduleBlockNotFoundError(DatabaseError):
    """Raised when a schedule block is not found."""

    pass


class BookingCreationError(DatabaseError):
    """Raised when booking creation fails."""

    pass


class BookingConflictError(BookingCreationError):
    """Raised when the database rejects an overlapping booking commit."""

    pass


class ValidationError(Exception):
    """Raised when input validation fails."""

    pass


class TimeParseError(ValueError):
    """Carried in time results when a clock time or duration is unusable."""

    pass
