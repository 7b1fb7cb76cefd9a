"""
Unit tests for the notification service
"""
import smtplib

import pytest
import requests
from datetime import date, time

from appointment_desk.core.config import settings
from appointment_desk.core.exceptions import NotificationDispatchFailure
from appointment_desk.schemas.schemas import GuestSubject, RegisteredSubject, ReminderConfig
from appointment_desk.services import notification_service
from appointment_desk.services.booking_ledger import BookingLedger
from appointment_desk.services.notification_service import (
    NotificationService,
    appointment_template_values,
    render_template,
)


class FakeResponse:
    def __init__(self, status_code=200, text=""):
        self.status_code = status_code
        self.text = text


class FakeHttp:
    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse()
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error:
            raise self.error
        return self.response


@pytest.fixture
def appointment(db, make_slot, test_user, test_service):
    slot = make_slot(day=date(2025, 6, 10), start=time(14, 30), end=time(15, 0))
    return BookingLedger(db).book(slot.id, RegisteredSubject(user_id=test_user.id), service_id=test_service.id)


@pytest.fixture
def whatsapp_settings(monkeypatch):
    monkeypatch.setattr(settings, "WHATSAPP_PHONE_NUMBER_ID", "1234")
    monkeypatch.setattr(settings, "WHATSAPP_ACCESS_TOKEN", "token")


@pytest.fixture
def recorded_email(monkeypatch):
    sent = []

    def fake_send_email(self, to_email, subject, text_body):
        sent.append((to_email, subject, text_body))
        return True

    monkeypatch.setattr(NotificationService, "_send_email", fake_send_email)
    return sent


@pytest.mark.unit
class TestTemplates:

    def test_values(self, appointment, test_user):
        values = appointment_template_values(appointment, 24)
        assert values["name"] == test_user.name
        assert values["date"] == "10/06/2025"
        assert values["time"] == "14:30"
        assert values["service"] == "Visa assistance"
        assert values["hours"] == 24

    def test_unknown_placeholder_is_kept(self):
        assert render_template("Hi {name}, {unknown}", {"name": "Awa"}) == "Hi Awa, {unknown}"

    def test_default_service_name(self, db, make_slot):
        slot = make_slot(day=date(2025, 6, 10))
        guest = BookingLedger(db).book(slot.id, GuestSubject(name="Jean", email="jean@example.com"))
        assert appointment_template_values(guest)["service"] == "Consultation"


@pytest.mark.unit
class TestChannels:
    """Tests for channel selection and delivery outcome"""

    def test_reminder_by_email(self, appointment, recorded_email, test_user):
        channels = NotificationService().send_reminder(appointment, 24, ReminderConfig())

        assert channels == ["email"]
        to_email, subject, body = recorded_email[0]
        assert to_email == test_user.email
        assert subject == "Reminder: your appointment on 10/06/2025 at 14:30"
        assert "Visa assistance" in body

    def test_custom_templates(self, appointment, recorded_email):
        config = ReminderConfig(email_subject="In {hours}h", email_template="See you at {time}")
        NotificationService().send_reminder(appointment, 2, config)
        assert recorded_email[0][1:] == ("In 2h", "See you at 14:30")

    def test_whatsapp_too(self, appointment, recorded_email, whatsapp_settings):
        http = FakeHttp()
        channels = NotificationService(http=http).send_reminder(
            appointment, 24, ReminderConfig(whatsapp_enabled=True)
        )

        assert channels == ["email", "whatsapp"]
        url, kwargs = http.calls[0]
        assert url.endswith("/1234/messages")
        assert kwargs["json"]["to"] == "22990000001"
        assert kwargs["headers"]["Authorization"] == "Bearer token"

    def test_one_channel_succeeding_is_enough(self, appointment, recorded_email, whatsapp_settings):
        http = FakeHttp(response=FakeResponse(status_code=400, text="bad number"))
        channels = NotificationService(http=http).send_reminder(
            appointment, 24, ReminderConfig(whatsapp_enabled=True)
        )
        assert channels == ["email"]

    def test_every_channel_failing(self, appointment, whatsapp_settings, monkeypatch):
        monkeypatch.setattr(NotificationService, "_send_email", lambda self, *args: False)
        http = FakeHttp(error=requests.ConnectionError("down"))

        with pytest.raises(NotificationDispatchFailure):
            NotificationService(http=http).send_reminder(appointment, 24, ReminderConfig(whatsapp_enabled=True))

    def test_no_channel_enabled(self, appointment):
        with pytest.raises(NotificationDispatchFailure):
            NotificationService().send_reminder(appointment, 24, ReminderConfig(email_enabled=False))

    def test_whatsapp_skipped_when_not_configured(self, appointment, recorded_email):
        http = FakeHttp()
        NotificationService(http=http).send_reminder(appointment, 24, ReminderConfig(whatsapp_enabled=True))
        assert http.calls == []

    def test_confirmation(self, appointment, recorded_email):
        NotificationService().send_confirmation(appointment, ReminderConfig())
        assert recorded_email[0][1] == "Your appointment on 10/06/2025 at 14:30 is confirmed"


@pytest.mark.unit
class TestSmtp:

    def test_not_configured(self, monkeypatch):
        monkeypatch.setattr(settings, "SMTP_USER", "")
        assert NotificationService()._send_email("a@example.com", "Hi", "Body") is False

    def test_smtp_error_is_reported_as_failure(self, monkeypatch):
        monkeypatch.setattr(settings, "SMTP_USER", "mailer")
        monkeypatch.setattr(settings, "SMTP_PASSWORD", "secret")

        def refuse(*args, **kwargs):
            raise smtplib.SMTPConnectError(421, "try later")

        monkeypatch.setattr(notification_service.smtplib, "SMTP", refuse)
        assert NotificationService()._send_email("a@example.com", "Hi", "Body") is False
