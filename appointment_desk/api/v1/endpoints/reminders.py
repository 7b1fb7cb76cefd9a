from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Union

from appointment_desk.api.deps import get_notification_service
from appointment_desk.core.database import get_db
from appointment_desk.schemas.schemas import (
    ReminderBatchResult,
    ReminderRunRequest,
    ReminderRunResult,
    ReminderSettingsResponse,
    ReminderSettingsUpdate,
)
from appointment_desk.services.notification_service import NotificationService
from appointment_desk.services.reminder_scheduler import ReminderScheduler
from appointment_desk.services import reminder_settings

router = APIRouter()


@router.get("/settings", response_model=ReminderSettingsResponse)
def get_reminder_settings(db: Session = Depends(get_db)):
    return reminder_settings.get_settings(db)


@router.put("/settings", response_model=ReminderSettingsResponse)
def update_reminder_settings(data: ReminderSettingsUpdate, db: Session = Depends(get_db)):
    return reminder_settings.update_settings(db, data)


@router.post("/run", response_model=Union[ReminderBatchResult, ReminderRunResult])
def run_reminders(
    data: ReminderRunRequest,
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
):
    """Send due reminders for one lead time (`hours`) or for every configured one (`all`)"""
    scheduler = ReminderScheduler(db, notifier, reminder_settings.load_reminder_config(db))
    if data.all:
        return scheduler.run_all()
    return scheduler.run(data.hours)
