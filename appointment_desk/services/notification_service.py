"""
Notification Service - Email and WhatsApp delivery for appointments

Channel selection follows the reminder settings:
- Email when enabled and the subject has an email address
- WhatsApp when enabled, the Cloud API is configured and the subject has a phone

A message counts as delivered when at least one channel succeeded.

Messages:
- Reminder: sent ahead of the appointment, once per lead time
- Confirmation: sent when staff confirm a booking
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List, Optional

import requests

from appointment_desk.core.config import settings
from appointment_desk.core.exceptions import NotificationDispatchFailure
from appointment_desk.schemas.schemas import ReminderConfig

logger = logging.getLogger(__name__)


class NotificationChannel:
    """Notification channel constants"""
    EMAIL = "email"
    WHATSAPP = "whatsapp"


DEFAULT_REMINDER_SUBJECT = "Reminder: your appointment on {date} at {time}"

DEFAULT_REMINDER_EMAIL = (
    "Hello {name},\n\n"
    "This is a reminder for your appointment.\n"
    "Date: {date}\n"
    "Time: {time}\n"
    "Service: {service}\n\n"
    "See you soon!"
)

DEFAULT_REMINDER_WHATSAPP = (
    "Appointment reminder\n\n"
    "Date: {date}\n"
    "Time: {time}\n"
    "Service: {service}\n\n"
    "Don't forget your appointment!"
)

CONFIRMATION_SUBJECT = "Your appointment on {date} at {time} is confirmed"

CONFIRMATION_BODY = (
    "Hello {name},\n\n"
    "Your appointment for {service} on {date} at {time} has been confirmed.\n\n"
    "See you soon!"
)


class _TemplateValues(dict):
    """Leaves unknown placeholders untouched instead of failing."""

    def __missing__(self, key):
        return "{" + key + "}"


def render_template(template: str, values: dict) -> str:
    return template.format_map(_TemplateValues(values))


def appointment_template_values(appointment, lead_hours: Optional[int] = None) -> dict:
    slot = appointment.slot
    return {
        "name": appointment.contact_name or "",
        "date": slot.date.strftime("%d/%m/%Y"),
        "time": slot.start_time.strftime("%H:%M"),
        "service": appointment.service.name if appointment.service else "Consultation",
        "hours": lead_hours if lead_hours is not None else "",
        "appointment_id": appointment.id,
    }


class NotificationService:
    """
    Sends appointment messages over email (SMTP) and WhatsApp (Cloud API).
    """

    def __init__(self, http: Optional[requests.Session] = None):
        self.http = http or requests.Session()

    # ==================== EMAIL METHODS ====================

    def _send_email(self, to_email: str, subject: str, text_body: str) -> bool:
        """
        Send an email notification.
        Returns True if successful, False otherwise.
        """
        if not settings.SMTP_USER or not settings.SMTP_PASSWORD:
            logger.info("SMTP not configured, skipping email to %s: %s", to_email, subject)
            return False

        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = f"{settings.SMTP_FROM_NAME} <{settings.SMTP_FROM_EMAIL}>"
            msg["To"] = to_email
            msg.attach(MIMEText(text_body, "plain"))

            with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
                server.starttls()
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
                server.sendmail(settings.SMTP_FROM_EMAIL, to_email, msg.as_string())

            logger.info("Email sent to %s: %s", to_email, subject)
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email to %s: %s", to_email, e)
            return False

    # ==================== WHATSAPP METHODS ====================

    def whatsapp_configured(self) -> bool:
        return bool(settings.WHATSAPP_PHONE_NUMBER_ID and settings.WHATSAPP_ACCESS_TOKEN)

    def _send_whatsapp(self, phone: str, message: str) -> bool:
        """
        Send a WhatsApp text message through the Cloud API.
        Returns True if successful, False otherwise.
        """
        if not self.whatsapp_configured():
            logger.info("WhatsApp not configured, skipping message to %s", phone)
            return False

        url = f"{settings.WHATSAPP_API_URL}/{settings.WHATSAPP_PHONE_NUMBER_ID}/messages"
        payload = {
            "messaging_product": "whatsapp",
            "to": phone.lstrip("+").replace(" ", ""),
            "type": "text",
            "text": {"body": message},
        }
        try:
            response = self.http.post(
                url,
                json=payload,
                headers={"Authorization": f"Bearer {settings.WHATSAPP_ACCESS_TOKEN}"},
                timeout=settings.WHATSAPP_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            logger.error("Failed to send WhatsApp message to %s: %s", phone, e)
            return False

        if response.status_code >= 400:
            logger.error("WhatsApp API rejected message to %s: %s", phone, response.text)
            return False

        logger.info("WhatsApp message sent to %s", phone)
        return True

    # ==================== HIGH-LEVEL METHODS ====================

    def send(
        self,
        config: ReminderConfig,
        email: Optional[str],
        phone: Optional[str],
        subject: str,
        email_body: str,
        whatsapp_body: str,
    ) -> List[str]:
        """
        Deliver one message through every enabled channel.

        Returns the channels that succeeded; raises NotificationDispatchFailure
        when none did.
        """
        channels_sent = []
        attempted = []

        if config.email_enabled and email:
            attempted.append(NotificationChannel.EMAIL)
            if self._send_email(email, subject, email_body):
                channels_sent.append(NotificationChannel.EMAIL)

        if config.whatsapp_enabled and phone and self.whatsapp_configured():
            attempted.append(NotificationChannel.WHATSAPP)
            if self._send_whatsapp(phone, whatsapp_body):
                channels_sent.append(NotificationChannel.WHATSAPP)

        if not attempted:
            raise NotificationDispatchFailure("No notification channel available for recipient")
        if not channels_sent:
            raise NotificationDispatchFailure(f"Delivery failed on: {', '.join(attempted)}")
        return channels_sent

    def send_reminder(self, appointment, lead_hours: int, config: ReminderConfig) -> List[str]:
        values = appointment_template_values(appointment, lead_hours)
        return self.send(
            config,
            email=appointment.contact_email,
            phone=appointment.contact_phone,
            subject=render_template(config.email_subject or DEFAULT_REMINDER_SUBJECT, values),
            email_body=render_template(config.email_template or DEFAULT_REMINDER_EMAIL, values),
            whatsapp_body=render_template(config.whatsapp_template or DEFAULT_REMINDER_WHATSAPP, values),
        )

    def send_confirmation(self, appointment, config: ReminderConfig) -> List[str]:
        values = appointment_template_values(appointment)
        body = render_template(CONFIRMATION_BODY, values)
        return self.send(
            config,
            email=appointment.contact_email,
            phone=appointment.contact_phone,
            subject=render_template(CONFIRMATION_SUBJECT, values),
            email_body=body,
            whatsapp_body=body,
        )
