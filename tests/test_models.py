"""
Unit tests for models
"""
import pytest
from datetime import date, time
from sqlalchemy.exc import IntegrityError

from appointment_desk.models.models import (
    Appointment,
    AppointmentSlot,
    AppointmentStatus,
    ReminderDelivery,
    SubjectType,
    User,
)
from appointment_desk.schemas.schemas import GuestSubject, RegisteredSubject


@pytest.mark.unit
class TestAppointmentSlotModel:
    """Tests for AppointmentSlot model"""

    def test_slot_defaults(self, db):
        """Test a new slot is open with an empty counter"""
        slot = AppointmentSlot(date=date(2025, 6, 10), start_time=time(9, 0), end_time=time(10, 0))
        db.add(slot)
        db.commit()
        db.refresh(slot)

        assert slot.is_available is True
        assert slot.max_bookings == 1
        assert slot.current_bookings == 0
        assert slot.is_bookable

    def test_slot_start_and_end(self, make_slot):
        slot = make_slot(day=date(2025, 6, 10), start=time(14, 30), end=time(15, 0))
        assert slot.starts_at.isoformat() == "2025-06-10T14:30:00"
        assert slot.ends_at.isoformat() == "2025-06-10T15:00:00"

    def test_full_or_closed_slot_is_not_bookable(self, make_slot):
        full = make_slot(start=time(9, 0), end=time(10, 0), max_bookings=2, current_bookings=2)
        closed = make_slot(start=time(10, 0), end=time(11, 0), is_available=False)
        assert not full.is_bookable
        assert not closed.is_bookable

    def test_counter_cannot_exceed_capacity(self, db):
        """Test the database rejects current_bookings > max_bookings"""
        db.add(AppointmentSlot(
            date=date(2025, 6, 10), start_time=time(9, 0), end_time=time(10, 0),
            max_bookings=1, current_bookings=2,
        ))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    def test_counter_cannot_go_negative(self, db):
        db.add(AppointmentSlot(
            date=date(2025, 6, 10), start_time=time(9, 0), end_time=time(10, 0), current_bookings=-1,
        ))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    def test_one_slot_per_start_time(self, db, make_slot):
        """Test that two slots cannot start at the same time on the same date"""
        slot = make_slot(day=date(2025, 6, 10), start=time(9, 0), end=time(10, 0))
        db.add(AppointmentSlot(date=slot.date, start_time=slot.start_time, end_time=time(9, 30)))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()


@pytest.mark.unit
class TestAppointmentModel:
    """Tests for Appointment model"""

    def test_registered_subject(self, db, test_slot, test_user):
        appointment = Appointment(appointment_slot_id=test_slot.id)
        appointment.subject = RegisteredSubject(user_id=test_user.id)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)

        assert appointment.status == AppointmentStatus.SCHEDULED
        assert appointment.subject_type == SubjectType.REGISTERED
        assert appointment.subject == RegisteredSubject(user_id=test_user.id)
        assert appointment.contact_email == test_user.email
        assert appointment.contact_phone == test_user.phone

    def test_guest_subject(self, db, test_slot):
        guest = GuestSubject(name="Jean Dupont", email="jean@example.com", phone="+33600000000")
        appointment = Appointment(appointment_slot_id=test_slot.id)
        appointment.subject = guest
        db.add(appointment)
        db.commit()
        db.refresh(appointment)

        assert appointment.user_id is None
        assert appointment.subject == guest
        assert appointment.contact_name == "Jean Dupont"
        assert appointment.contact_email == "jean@example.com"

    def test_switching_subject_clears_other_fields(self, test_slot, test_user):
        appointment = Appointment(appointment_slot_id=test_slot.id)
        appointment.subject = GuestSubject(name="Jean Dupont", email="jean@example.com")
        appointment.subject = RegisteredSubject(user_id=test_user.id)

        assert appointment.guest_name is None
        assert appointment.guest_email is None
        assert appointment.user_id == test_user.id

    def test_user_email_unique(self, db, test_user):
        db.add(User(name="Other", email=test_user.email))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()


@pytest.mark.unit
class TestReminderDeliveryModel:
    """Tests for ReminderDelivery model"""

    def test_one_delivery_per_lead_time(self, db, test_slot, test_user):
        """Test the same reminder cannot be recorded twice for an appointment"""
        appointment = Appointment(appointment_slot_id=test_slot.id)
        appointment.subject = RegisteredSubject(user_id=test_user.id)
        db.add(appointment)
        db.commit()

        db.add(ReminderDelivery(appointment_id=appointment.id, lead_hours=24))
        db.add(ReminderDelivery(appointment_id=appointment.id, lead_hours=2))
        db.commit()

        db.add(ReminderDelivery(appointment_id=appointment.id, lead_hours=24))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()
