from fastapi import Depends
from sqlalchemy.orm import Session

from appointment_desk.core.database import get_db
from appointment_desk.services.booking_ledger import BookingLedger
from appointment_desk.services.notification_service import NotificationService
from appointment_desk.services.reminder_settings import load_reminder_config
from appointment_desk.services.slot_generator import SlotGenerator


def get_notification_service() -> NotificationService:
    return NotificationService()


def get_slot_generator(db: Session = Depends(get_db)) -> SlotGenerator:
    return SlotGenerator(db)


def get_booking_ledger(
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
) -> BookingLedger:
    return BookingLedger(db, notifier=notifier, reminder_config=load_reminder_config(db))
