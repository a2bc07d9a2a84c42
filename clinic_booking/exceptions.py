"""Domain errors raised by the booking core.

Services raise these instead of ``HTTPException``; ``main.py`` renders them
into the ``{"success": false, "message": ...}`` envelope.
"""

from typing import Any, Optional


class BookingError(Exception):
    status_code = 500

    def __init__(self, message: str, *, conflicts: Optional[list[dict[str, Any]]] = None):
        super().__init__(message)
        self.message = message
        self.conflicts = conflicts


class ValidationError(BookingError):
    """Malformed date, time slot, id or payload shape"""

    status_code = 400


class AuthorizationError(BookingError):
    """Acting user does not own the resource"""

    status_code = 403


class NotFoundError(BookingError):
    status_code = 404


class ConflictError(BookingError):
    """Slot taken, duplicate week, or an edit that would orphan bookings"""

    status_code = 409


class StorageError(BookingError):
    status_code = 500


class ScheduleNotFound(NotFoundError):
    pass


class DayUnavailable(ConflictError):
    pass
