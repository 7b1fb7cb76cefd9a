"""
Appointment reminder scheduler.

Invoked periodically from outside (cron, CLI, admin endpoint). For a lead
time L, an appointment is due when:

- its status is scheduled or confirmed;
- its slot starts within [now + L - 30min, now + L + 30min];
- it has not started yet and starts within one hour of L from now;
- no reminder for lead time L was delivered before.

Each delivery is recorded in appointment_reminders, unique per
(appointment, lead time), so a re-run never sends the same reminder twice.
A failed delivery is logged and counted; the rest of the batch goes on.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from appointment_desk.core.config import settings
from appointment_desk.core.exceptions import NotificationDispatchFailure
from appointment_desk.models.models import Appointment, AppointmentSlot, AppointmentStatus, ReminderDelivery
from appointment_desk.schemas.schemas import ReminderBatchResult, ReminderConfig, ReminderRunResult

logger = logging.getLogger(__name__)

WINDOW_MARGIN = timedelta(minutes=30)
LEAD_TOLERANCE_HOURS = 1


class ReminderScheduler:
    def __init__(
        self,
        db: Session,
        notifier,
        config: ReminderConfig,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.db = db
        self.notifier = notifier
        self.config = config
        self.clock = clock

    def default_lead_hours(self) -> int:
        if self.config.reminder_hours:
            return self.config.reminder_hours[0]
        return settings.DEFAULT_REMINDER_HOURS

    def find_due(self, lead_hours: int, now: datetime) -> Tuple[List[Appointment], int]:
        """Return (due appointments, how many candidates were already reminded)."""
        window_start = now + timedelta(hours=lead_hours) - WINDOW_MARGIN
        window_end = now + timedelta(hours=lead_hours) + WINDOW_MARGIN

        candidates = self.db.query(Appointment).join(AppointmentSlot).filter(
            Appointment.status.in_(AppointmentStatus.ACTIVE),
            AppointmentSlot.date >= window_start.date(),
            AppointmentSlot.date <= window_end.date(),
        ).order_by(AppointmentSlot.date, AppointmentSlot.start_time).all()

        in_window = []
        for appointment in candidates:
            starts_at = appointment.slot.starts_at
            if not (window_start <= starts_at <= window_end):
                continue
            hours_until = (starts_at - now).total_seconds() / 3600
            if hours_until < 0:
                continue
            if abs(hours_until - lead_hours) > LEAD_TOLERANCE_HOURS:
                continue
            in_window.append(appointment)

        if not in_window:
            return [], 0

        already_sent = {
            appointment_id
            for (appointment_id,) in self.db.query(ReminderDelivery.appointment_id).filter(
                ReminderDelivery.lead_hours == lead_hours,
                ReminderDelivery.appointment_id.in_([a.id for a in in_window]),
            )
        }
        due = [a for a in in_window if a.id not in already_sent]
        return due, len(in_window) - len(due)

    def run(self, lead_hours: Optional[int] = None) -> ReminderRunResult:
        if lead_hours is None:
            lead_hours = self.default_lead_hours()

        if not self.config.enabled:
            logger.info("Appointment reminders are disabled")
            return ReminderRunResult(lead_hours=lead_hours, enabled=False)

        now = self.clock()
        due, skipped = self.find_due(lead_hours, now)
        if not due:
            logger.info("No reminder to send %dh before appointments", lead_hours)
            return ReminderRunResult(lead_hours=lead_hours, skipped=skipped)

        logger.info("Sending %d reminder(s) %dh before appointments", len(due), lead_hours)
        sent = failed = 0
        for appointment in due:
            outcome = self._deliver(appointment, lead_hours, now)
            if outcome is True:
                sent += 1
            elif outcome is False:
                failed += 1
            else:
                skipped += 1

        logger.info("%dh reminders: %d sent, %d failed, %d skipped", lead_hours, sent, failed, skipped)
        return ReminderRunResult(lead_hours=lead_hours, sent=sent, failed=failed, skipped=skipped)

    def _deliver(self, appointment: Appointment, lead_hours: int, now: datetime) -> Optional[bool]:
        """True when sent, False when delivery failed, None when another run claimed it first."""
        appointment_id = appointment.id
        delivery = ReminderDelivery(appointment_id=appointment_id, lead_hours=lead_hours, sent_at=now)
        self.db.add(delivery)
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            logger.info("Reminder %dh for appointment %s already claimed", lead_hours, appointment_id)
            return None

        try:
            channels = self.notifier.send_reminder(appointment, lead_hours, self.config)
        except NotificationDispatchFailure as e:
            self.db.rollback()
            logger.warning("Reminder for appointment %s failed: %s", appointment_id, e)
            return False
        except Exception:
            self.db.rollback()
            logger.exception("Unexpected error sending reminder for appointment %s", appointment_id)
            return False

        delivery.channels_sent = ",".join(channels) if channels else None
        appointment.reminder_sent_at = now
        self.db.commit()
        logger.info("Reminder %dh sent for appointment %s", lead_hours, appointment_id)
        return True

    def run_all(self) -> ReminderBatchResult:
        """Run every configured lead time. Fails only if every run failed."""
        if not self.config.enabled:
            logger.info("Appointment reminders are disabled")
            return ReminderBatchResult(runs=[], sent=0, failed=0, ok=True)
        if not self.config.reminder_hours:
            logger.warning("No reminder lead time configured")
            return ReminderBatchResult(runs=[], sent=0, failed=0, ok=True)

        runs = [self.run(hours) for hours in self.config.reminder_hours]
        return ReminderBatchResult(
            runs=runs,
            sent=sum(r.sent for r in runs),
            failed=sum(r.failed for r in runs),
            ok=any(r.ok for r in runs),
        )
