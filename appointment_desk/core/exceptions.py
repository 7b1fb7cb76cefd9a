"""
Domain errors for the appointment core.

Every error carries a stable ``code`` and the HTTP status the API maps it
to, so callers can tell "pick another slot" from "fix the request" from
"retry the same request".
"""
from typing import Optional


class AppointmentError(Exception):
    code = "appointment_error"
    status_code = 400
    retryable = False

    def __init__(self, message: str, *, entity_id: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.entity_id = entity_id

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class ValidationError(AppointmentError):
    """Malformed input: bad date format, missing reference, bad capacity."""
    code = "validation_error"
    status_code = 422


class NotFound(AppointmentError):
    code = "not_found"
    status_code = 404


class SlotUnavailable(AppointmentError):
    """Slot is full or was marked unavailable at booking time."""
    code = "slot_unavailable"
    status_code = 409


class DuplicateBooking(AppointmentError):
    code = "duplicate_booking"
    status_code = 409


class SlotInUse(AppointmentError):
    code = "slot_in_use"
    status_code = 409


class InvalidTransition(AppointmentError):
    code = "invalid_transition"
    status_code = 409

    def __init__(self, current: str, target: str, *, entity_id: Optional[int] = None):
        super().__init__(
            f"Cannot change appointment status from '{current}' to '{target}'",
            entity_id=entity_id,
        )
        self.current = current
        self.target = target


class ConcurrencyConflict(AppointmentError):
    """Lock timeout or serialization failure; safe to retry."""
    code = "concurrency_conflict"
    status_code = 503
    retryable = True


class NotificationDispatchFailure(AppointmentError):
    code = "notification_failed"
    status_code = 502
    retryable = True
