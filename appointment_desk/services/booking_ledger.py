"""
Booking ledger.

The only code allowed to move an appointment slot's booking counter. Every
book/cancel on a slot runs under that slot's lock:

- a per-slot mutex (core.locks) serializes requests handled by this process;
- SELECT ... FOR UPDATE holds the row for the rest of the transaction on
  databases that support row locks;
- the counter itself is moved by a guarded UPDATE (``current_bookings <
  max_bookings``), so the capacity check and the increment are one
  statement even where row locks are not available.

Lock timeouts and serialization failures are retried a few times and then
surface as ConcurrencyConflict.
"""
import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from appointment_desk.core.config import settings
from appointment_desk.core.locks import slot_lock
from appointment_desk.core.exceptions import (
    ConcurrencyConflict,
    DuplicateBooking,
    InvalidTransition,
    NotFound,
    NotificationDispatchFailure,
    SlotUnavailable,
    ValidationError,
)
from appointment_desk.models.models import (
    Appointment,
    AppointmentSlot,
    AppointmentStatus,
    Order,
    Service,
    SubjectType,
    User,
)
from appointment_desk.schemas.schemas import GuestSubject, RegisteredSubject
from appointment_desk.services.slot_generator import parse_date

logger = logging.getLogger(__name__)

TRANSITIONS = {
    AppointmentStatus.SCHEDULED: {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED},
    AppointmentStatus.CONFIRMED: {AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED},
    AppointmentStatus.CANCELLED: set(),
    AppointmentStatus.COMPLETED: set(),
}


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, set())


class BookingLedger:
    def __init__(self, db: Session, notifier=None, reminder_config=None, retry_attempts: Optional[int] = None):
        self.db = db
        self.notifier = notifier
        self.reminder_config = reminder_config
        self.retry_attempts = retry_attempts or settings.BOOKING_RETRY_ATTEMPTS

    def _with_retry(self, operation, *args, **kwargs):
        last_error = None
        for attempt in range(1, self.retry_attempts + 1):
            try:
                return operation(*args, **kwargs)
            except OperationalError as e:
                self.db.rollback()
                last_error = e
                logger.warning(
                    "Lock conflict on %s (attempt %d/%d): %s",
                    operation.__name__, attempt, self.retry_attempts, e.orig,
                )
        raise ConcurrencyConflict("The slot is busy, please retry") from last_error

    # ==================== BOOKING ====================

    def book(
        self,
        slot_id: int,
        subject,
        service_id: Optional[int] = None,
        order_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Appointment:
        """Reserve one place on a slot. Raises SlotUnavailable when it is full or closed."""
        if subject is None:
            raise ValidationError("A registered user or guest contact is required")
        return self._with_retry(self._book_once, slot_id, subject, service_id, order_id, notes)

    def _book_once(self, slot_id, subject, service_id, order_id, notes) -> Appointment:
        with slot_lock(slot_id):
            try:
                slot = self.db.query(AppointmentSlot).filter(
                    AppointmentSlot.id == slot_id
                ).with_for_update().first()
                if slot is None:
                    raise NotFound("Slot not found", entity_id=slot_id)
                if not slot.is_bookable:
                    raise SlotUnavailable("This slot is no longer available", entity_id=slot_id)

                service_id = self._resolve_references(subject, service_id, order_id)
                if isinstance(subject, RegisteredSubject):
                    self._ensure_not_already_booked(slot_id, subject.user_id)

                appointment = Appointment(
                    appointment_slot_id=slot_id,
                    order_id=order_id,
                    service_id=service_id,
                    status=AppointmentStatus.SCHEDULED,
                    notes=notes,
                )
                appointment.subject = subject
                self.db.add(appointment)
                self.db.flush()

                claimed = self.db.query(AppointmentSlot).filter(
                    AppointmentSlot.id == slot_id,
                    AppointmentSlot.is_available.is_(True),
                    AppointmentSlot.current_bookings < AppointmentSlot.max_bookings,
                ).update(
                    {AppointmentSlot.current_bookings: AppointmentSlot.current_bookings + 1},
                    synchronize_session=False,
                )
                if claimed != 1:
                    raise SlotUnavailable("This slot is no longer available", entity_id=slot_id)

                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(appointment)
        logger.info(
            "Appointment %s booked on slot %s (%s)",
            appointment.id, slot_id, appointment.subject_type,
        )
        return appointment

    def _resolve_references(self, subject, service_id, order_id) -> Optional[int]:
        if isinstance(subject, RegisteredSubject):
            if self.db.get(User, subject.user_id) is None:
                raise ValidationError("User not found", entity_id=subject.user_id)
        elif not isinstance(subject, GuestSubject):
            raise ValidationError("Unknown appointment subject")

        if order_id is not None:
            order = self.db.get(Order, order_id)
            if order is None:
                raise ValidationError("Order not found", entity_id=order_id)
            if service_id is None:
                service_id = order.service_id

        if service_id is not None and self.db.get(Service, service_id) is None:
            raise ValidationError("Service not found", entity_id=service_id)
        return service_id

    def _ensure_not_already_booked(self, slot_id: int, user_id: int) -> None:
        existing = self.db.query(Appointment.id).filter(
            Appointment.appointment_slot_id == slot_id,
            Appointment.subject_type == SubjectType.REGISTERED,
            Appointment.user_id == user_id,
            Appointment.status.in_(AppointmentStatus.ACTIVE),
        ).first()
        if existing is not None:
            raise DuplicateBooking("You already have an appointment on this slot", entity_id=slot_id)

    # ==================== STATUS CHANGES ====================

    def get(self, appointment_id: int) -> Appointment:
        appointment = self.db.get(Appointment, appointment_id)
        if appointment is None:
            raise NotFound("Appointment not found", entity_id=appointment_id)
        return appointment

    def cancel(self, appointment_id: int, reason: Optional[str] = None) -> Appointment:
        """
        Cancel a scheduled or confirmed appointment and give its place back.
        Cancelling twice is a no-op.
        """
        appointment = self.get(appointment_id)
        if appointment.status == AppointmentStatus.CANCELLED:
            return appointment
        return self._with_retry(self._cancel_once, appointment, reason)

    def _cancel_once(self, appointment: Appointment, reason: Optional[str]) -> Appointment:
        with slot_lock(appointment.appointment_slot_id):
            try:
                self.db.refresh(appointment, with_for_update=True)
                if appointment.status == AppointmentStatus.CANCELLED:
                    self.db.commit()
                    return appointment
                if not can_transition(appointment.status, AppointmentStatus.CANCELLED):
                    raise InvalidTransition(
                        appointment.status, AppointmentStatus.CANCELLED, entity_id=appointment.id
                    )

                appointment.status = AppointmentStatus.CANCELLED
                if reason:
                    note = f"Cancelled: {reason}"
                    appointment.notes = f"{appointment.notes}\n\n{note}" if appointment.notes else note

                self.db.query(AppointmentSlot).filter(
                    AppointmentSlot.id == appointment.appointment_slot_id,
                    AppointmentSlot.current_bookings > 0,
                ).update(
                    {AppointmentSlot.current_bookings: AppointmentSlot.current_bookings - 1},
                    synchronize_session=False,
                )
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(appointment)
        logger.info("Appointment %s cancelled", appointment.id)
        return appointment

    def confirm(self, appointment_id: int) -> Appointment:
        appointment, changed = self._transition(appointment_id, AppointmentStatus.CONFIRMED)
        if changed:
            self._notify_confirmed(appointment)
        return appointment

    def complete(self, appointment_id: int) -> Appointment:
        appointment, _ = self._transition(appointment_id, AppointmentStatus.COMPLETED)
        return appointment

    def _transition(self, appointment_id: int, target: str) -> Tuple[Appointment, bool]:
        """Move to target; returns the appointment and whether the status changed."""
        appointment = self.get(appointment_id)
        try:
            self.db.refresh(appointment, with_for_update=True)
            if appointment.status == target:
                self.db.commit()
                return appointment, False
            if not can_transition(appointment.status, target):
                raise InvalidTransition(appointment.status, target, entity_id=appointment.id)
            appointment.status = target
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(appointment)
        logger.info("Appointment %s is now %s", appointment.id, target)
        return appointment, True

    def _notify_confirmed(self, appointment: Appointment) -> None:
        if self.notifier is None or self.reminder_config is None:
            return
        try:
            self.notifier.send_confirmation(appointment, self.reminder_config)
        except NotificationDispatchFailure as e:
            logger.warning("Confirmation for appointment %s not delivered: %s", appointment.id, e)

    # ==================== QUERIES ====================

    def list_appointments(
        self,
        status: Optional[str] = None,
        day=None,
        page: int = 1,
        per_page: int = 20,
    ) -> Tuple[List[Appointment], int]:
        query = self.db.query(Appointment).join(AppointmentSlot)
        if status:
            if status not in AppointmentStatus.ALL:
                raise ValidationError(f"Unknown status '{status}'")
            query = query.filter(Appointment.status == status)
        if day is not None:
            query = query.filter(AppointmentSlot.date == parse_date(day))

        total = query.count()
        appointments = query.order_by(
            AppointmentSlot.date.desc(), AppointmentSlot.start_time.desc(), Appointment.id.desc()
        ).offset((page - 1) * per_page).limit(per_page).all()
        return appointments, total
