"""
Slot generation and administration.

Slots are materialized from the business-hours windows for one date or for
every date of a horizon. Generation only ever inserts rows with an empty
booking counter; existing slots (keyed on date + start time) are left alone,
so running it twice for the same date is harmless.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from appointment_desk.core.config import settings
from appointment_desk.core.exceptions import NotFound, SlotInUse, ValidationError
from appointment_desk.core.locks import slot_lock
from appointment_desk.models.models import Appointment, AppointmentSlot
from appointment_desk.schemas.schemas import SlotCreate, SlotUpdate
from appointment_desk.utils.slot_manager import BusinessHours

logger = logging.getLogger(__name__)


def parse_date(value) -> date:
    """Accept a date, a datetime or a YYYY-MM-DD string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise ValidationError(f"Invalid date: {value!r} (expected YYYY-MM-DD)")


class SlotGenerator:
    def __init__(
        self,
        db: Session,
        hours: Optional[BusinessHours] = None,
        clock: Callable[[], datetime] = datetime.now,
        max_bookings: Optional[int] = None,
        recurring_enabled: Optional[bool] = None,
    ):
        self.db = db
        self.hours = hours or BusinessHours.from_settings(settings)
        self.clock = clock
        self.max_bookings = max_bookings or settings.MAX_BOOKINGS_PER_SLOT
        self.recurring_enabled = settings.RECURRING_SLOTS_ENABLED if recurring_enabled is None else recurring_enabled

    # ==================== GENERATION ====================

    def generate_for_date(self, day) -> int:
        """Create the missing slots of one date. Returns how many were created."""
        day = parse_date(day)
        windows = self.hours.windows_for_date(day)
        if not windows:
            return 0

        try:
            created = self._insert_missing(day, windows)
        except IntegrityError:
            # Another generator inserted some of the same windows; recount and retry once
            self.db.rollback()
            logger.info("Concurrent slot generation detected for %s, retrying", day)
            created = self._insert_missing(day, windows)

        if created:
            logger.info("Generated %d slot(s) for %s", created, day.isoformat())
        return created

    def _insert_missing(self, day: date, windows) -> int:
        existing = {
            start for (start,) in self.db.query(AppointmentSlot.start_time).filter(AppointmentSlot.date == day)
        }
        created = 0
        for start, end in windows:
            if start in existing:
                continue
            self.db.add(AppointmentSlot(
                date=day,
                start_time=start,
                end_time=end,
                is_available=True,
                max_bookings=self.max_bookings,
                current_bookings=0,
            ))
            created += 1
        if created:
            self.db.commit()
        return created

    def generate_recurring(self, days_ahead: Optional[int] = None) -> int:
        """
        Generate slots for every date in [today, today + days_ahead].

        Each date is committed on its own; a failing date is logged and
        does not undo the dates before it.
        """
        if days_ahead is None:
            days_ahead = settings.GENERATE_DAYS_AHEAD
        if days_ahead < 0:
            raise ValidationError("days_ahead must be zero or positive")
        if not self.recurring_enabled:
            logger.info("Recurring slot generation is disabled")
            return 0

        today = self.clock().date()
        total = 0
        for offset in range(days_ahead + 1):
            day = today + timedelta(days=offset)
            try:
                total += self.generate_for_date(day)
            except SQLAlchemyError:
                self.db.rollback()
                logger.exception("Slot generation failed for %s", day.isoformat())
        return total

    # ==================== QUERIES ====================

    def available_slots(self, day) -> List[AppointmentSlot]:
        """Bookable slots of a date, generating the date first if it has no slots at all."""
        day = parse_date(day)
        slots = self._bookable_query(day).all()
        if not slots and not self._slots_exist(day):
            self.generate_for_date(day)
            slots = self._bookable_query(day).all()
        return slots

    def _bookable_query(self, day: date):
        return self.db.query(AppointmentSlot).filter(
            AppointmentSlot.date == day,
            AppointmentSlot.is_available.is_(True),
            AppointmentSlot.current_bookings < AppointmentSlot.max_bookings,
        ).order_by(AppointmentSlot.start_time)

    def _slots_exist(self, day: date) -> bool:
        return self.db.query(AppointmentSlot.id).filter(AppointmentSlot.date == day).first() is not None

    def list_slots(self, day=None, page: int = 1, per_page: int = 30) -> Tuple[List[AppointmentSlot], int]:
        query = self.db.query(AppointmentSlot)
        if day is not None:
            query = query.filter(AppointmentSlot.date == parse_date(day))
        total = query.count()
        slots = query.order_by(AppointmentSlot.date, AppointmentSlot.start_time).offset(
            (page - 1) * per_page
        ).limit(per_page).all()
        return slots, total

    def get_slot(self, slot_id: int) -> AppointmentSlot:
        slot = self.db.get(AppointmentSlot, slot_id)
        if slot is None:
            raise NotFound("Slot not found", entity_id=slot_id)
        return slot

    # ==================== ADMINISTRATION ====================

    def create_slot(self, data: SlotCreate) -> AppointmentSlot:
        self._ensure_start_free(data.date, data.start_time)
        slot = AppointmentSlot(
            date=data.date,
            start_time=data.start_time,
            end_time=data.end_time,
            is_available=data.is_available,
            max_bookings=data.max_bookings,
            current_bookings=0,
        )
        self.db.add(slot)
        self.db.commit()
        self.db.refresh(slot)
        logger.info("Slot %s created for %s %s", slot.id, slot.date, slot.start_time)
        return slot

    def update_slot(self, slot_id: int, data: SlotUpdate) -> AppointmentSlot:
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        with slot_lock(slot_id):
            try:
                slot = self._lock_slot(slot_id)
                new_date = changes.get("date", slot.date)
                new_start = changes.get("start_time", slot.start_time)
                new_end = changes.get("end_time", slot.end_time)
                new_capacity = changes.get("max_bookings", slot.max_bookings)

                if new_end <= new_start:
                    raise ValidationError("end_time must be after start_time")
                if new_capacity < slot.current_bookings:
                    raise ValidationError(
                        f"Capacity cannot be lower than the {slot.current_bookings} existing booking(s)"
                    )
                if (new_date, new_start) != (slot.date, slot.start_time):
                    self._ensure_start_free(new_date, new_start)

                for field, value in changes.items():
                    setattr(slot, field, value)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
        self.db.refresh(slot)
        return slot

    def delete_slot(self, slot_id: int) -> None:
        """Delete a slot that has never been booked. Raises SlotInUse otherwise."""
        with slot_lock(slot_id):
            try:
                slot = self._lock_slot(slot_id)
                booked = self.db.query(Appointment.id).filter(
                    Appointment.appointment_slot_id == slot_id
                ).first()
                if booked is not None:
                    raise SlotInUse("Slot has appointments and cannot be deleted", entity_id=slot_id)
                self.db.delete(slot)
                self.db.commit()
            except IntegrityError as e:
                # An appointment committed by another process still references the slot
                self.db.rollback()
                raise SlotInUse("Slot has appointments and cannot be deleted", entity_id=slot_id) from e
            except Exception:
                self.db.rollback()
                raise
        logger.info("Slot %s deleted", slot_id)

    def _lock_slot(self, slot_id: int) -> AppointmentSlot:
        slot = self.db.query(AppointmentSlot).filter(AppointmentSlot.id == slot_id).with_for_update().first()
        if slot is None:
            raise NotFound("Slot not found", entity_id=slot_id)
        return slot

    def clear_slots(self) -> int:
        """Delete every slot that has no appointment attached."""
        deleted = self.db.query(AppointmentSlot).filter(
            ~AppointmentSlot.appointments.any()
        ).delete(synchronize_session=False)
        self.db.commit()
        logger.info("Cleared %d slot(s) without appointments", deleted)
        return deleted

    def _ensure_start_free(self, day: date, start) -> None:
        clash = self.db.query(AppointmentSlot.id).filter(
            AppointmentSlot.date == day,
            AppointmentSlot.start_time == start,
        ).first()
        if clash is not None:
            raise ValidationError(f"A slot already starts on {day.isoformat()} at {start.strftime('%H:%M')}")
