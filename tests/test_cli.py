"""
Unit tests for the command line jobs
"""
import pytest
from datetime import date, datetime, timedelta

from appointment_desk import cli
from appointment_desk.core.config import settings
from appointment_desk.models.models import AppointmentSlot, ReminderDelivery, ReminderSettings
from appointment_desk.schemas.schemas import RegisteredSubject
from appointment_desk.services.booking_ledger import BookingLedger

from conftest import TestingSessionLocal


@pytest.fixture(autouse=True)
def cli_session(monkeypatch, db):
    monkeypatch.setattr(cli, "SessionLocal", TestingSessionLocal)


@pytest.fixture
def due_tomorrow(db, make_slot, test_user):
    starts_at = (datetime.now() + timedelta(hours=24)).replace(second=0, microsecond=0)
    slot = make_slot(day=starts_at.date(), start=starts_at.time(), end=(starts_at + timedelta(minutes=30)).time())
    return BookingLedger(db).book(slot.id, RegisteredSubject(user_id=test_user.id))


@pytest.mark.unit
class TestGenerateSlotsCommand:

    def test_specific_date(self, db):
        assert cli.main(["generate-slots", "--date", "2025-06-10"]) == 0
        assert db.query(AppointmentSlot).filter(AppointmentSlot.date == date(2025, 6, 10)).count() == 14

    def test_invalid_date(self, db):
        assert cli.main(["generate-slots", "--date", "10-06-2025"]) == 1
        assert db.query(AppointmentSlot).count() == 0

    def test_recurring(self, db):
        assert cli.main(["generate-slots", "--recurring", "--days", "6"]) == 0
        dates = {d for (d,) in db.query(AppointmentSlot.date).distinct()}
        # A week contains exactly one closed Sunday
        assert len(dates) == 6

    def test_negative_days(self):
        assert cli.main(["generate-slots", "--recurring", "--days", "-1"]) == 1

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            cli.main([])


@pytest.mark.unit
class TestSendRemindersCommand:

    def test_nothing_due(self):
        assert cli.main(["send-reminders", "--all"]) == 0

    def test_single_lead_time_reports_success_even_with_failures(self, monkeypatch, due_tomorrow):
        monkeypatch.setattr(settings, "SMTP_USER", "")
        assert cli.main(["send-reminders", "--hours", "24"]) == 0

    def test_all_fails_when_every_run_failed(self, db, monkeypatch, due_tomorrow):
        monkeypatch.setattr(settings, "SMTP_USER", "")
        db.add(ReminderSettings(enabled=True, reminder_hours=[24], email_enabled=True, whatsapp_enabled=False))
        db.commit()

        assert cli.main(["send-reminders", "--all"]) == 1
        assert db.query(ReminderDelivery).count() == 0

    def test_all_delivers(self, db, monkeypatch, due_tomorrow):
        monkeypatch.setattr(
            cli.NotificationService, "_send_email", lambda self, to_email, subject, body: True
        )

        assert cli.main(["send-reminders", "--all"]) == 0
        delivery = db.query(ReminderDelivery).one()
        assert delivery.appointment_id == due_tomorrow.id
        assert delivery.lead_hours == 24
