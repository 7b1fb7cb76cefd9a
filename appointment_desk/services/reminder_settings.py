from sqlalchemy.orm import Session

from appointment_desk.models.models import ReminderSettings
from appointment_desk.schemas.schemas import ReminderConfig, ReminderSettingsUpdate

DEFAULT_SETTINGS = {
    "enabled": True,
    "reminder_hours": [24, 2],
    "email_enabled": True,
    "whatsapp_enabled": False,
}


def get_settings(db: Session) -> ReminderSettings:
    """Return the settings row, creating it with defaults on first read."""
    row = db.query(ReminderSettings).order_by(ReminderSettings.id).first()
    if row is None:
        row = ReminderSettings(**DEFAULT_SETTINGS)
        db.add(row)
        db.commit()
        db.refresh(row)
    return row


def load_reminder_config(db: Session) -> ReminderConfig:
    return ReminderConfig.model_validate(get_settings(db))


def update_settings(db: Session, data: ReminderSettingsUpdate) -> ReminderSettings:
    row = get_settings(db)
    for field, value in data.model_dump().items():
        setattr(row, field, value)
    db.commit()
    db.refresh(row)
    return row
