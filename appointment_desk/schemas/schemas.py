from __future__ import annotations
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
import datetime as dt
from typing import Annotated, Optional, List, Literal, Tuple, Union


# Subject schemas (who the appointment is for)
class RegisteredSubject(BaseModel):
    kind: Literal["registered"] = "registered"
    user_id: int


class GuestSubject(BaseModel):
    kind: Literal["guest"] = "guest"
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = None


Subject = Annotated[Union[RegisteredSubject, GuestSubject], Field(discriminator="kind")]


# Slot schemas
class SlotBase(BaseModel):
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    max_bookings: int = Field(default=1, ge=1)
    is_available: bool = True


class SlotCreate(SlotBase):
    @model_validator(mode="after")
    def check_times(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class SlotUpdate(BaseModel):
    date: Optional[dt.date] = None
    start_time: Optional[dt.time] = None
    end_time: Optional[dt.time] = None
    max_bookings: Optional[int] = Field(None, ge=1)
    is_available: Optional[bool] = None


class SlotResponse(SlotBase):
    id: int
    current_bookings: int
    is_bookable: bool
    created_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True


class SlotListResponse(BaseModel):
    """Paginated list of slots"""
    slots: List[SlotResponse]
    total: int
    page: int
    per_page: int
    total_pages: int


class GenerateSlotsRequest(BaseModel):
    """Generate slots for one date (`date`) or for a horizon (`recurring`)"""
    date: Optional[str] = None  # YYYY-MM-DD
    recurring: bool = False
    days: Optional[int] = Field(None, ge=0, le=366)


class GenerateSlotsResponse(BaseModel):
    generated: int
    date: Optional[dt.date] = None
    days_ahead: Optional[int] = None


class ClearSlotsResponse(BaseModel):
    deleted: int


# Appointment schemas
class AppointmentCreate(BaseModel):
    appointment_slot_id: int
    subject: Subject
    service_id: Optional[int] = None
    order_id: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=1000)


class AppointmentCancel(BaseModel):
    """Optional reason, appended to the appointment notes"""
    reason: Optional[str] = Field(None, max_length=500)


class AppointmentResponse(BaseModel):
    id: int
    appointment_slot_id: int
    subject_type: str
    user_id: Optional[int] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    order_id: Optional[int] = None
    service_id: Optional[int] = None
    status: str
    notes: Optional[str] = None
    reminder_sent_at: Optional[dt.datetime] = None
    created_at: Optional[dt.datetime] = None
    slot: SlotResponse

    class Config:
        from_attributes = True


class AppointmentListResponse(BaseModel):
    """Paginated list of appointments"""
    appointments: List[AppointmentResponse]
    total: int
    page: int
    per_page: int
    total_pages: int


# Reminder schemas
class ReminderSettingsBase(BaseModel):
    enabled: bool
    reminder_hours: List[int]
    email_enabled: bool
    whatsapp_enabled: bool
    email_subject: Optional[str] = Field(None, max_length=255)
    email_template: Optional[str] = None
    whatsapp_template: Optional[str] = None


class ReminderSettingsUpdate(ReminderSettingsBase):
    reminder_hours: List[int] = Field(min_length=1)

    @field_validator("reminder_hours")
    @classmethod
    def check_hours(cls, value: List[int]) -> List[int]:
        for hours in value:
            if hours < 1 or hours > 168:
                raise ValueError("reminder hours must be between 1 and 168")
        return value


class ReminderSettingsResponse(ReminderSettingsBase):
    id: int
    updated_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True


class ReminderConfig(BaseModel):
    """Immutable snapshot of the reminder settings used for one scheduler run"""
    enabled: bool = True
    reminder_hours: Tuple[int, ...] = (24, 2)
    email_enabled: bool = True
    whatsapp_enabled: bool = False
    email_subject: Optional[str] = None
    email_template: Optional[str] = None
    whatsapp_template: Optional[str] = None

    class Config:
        from_attributes = True
        frozen = True


class ReminderRunRequest(BaseModel):
    hours: Optional[int] = Field(None, ge=1, le=168)
    all: bool = False


class ReminderRunResult(BaseModel):
    lead_hours: int
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    enabled: bool = True

    @property
    def ok(self) -> bool:
        return not (self.failed and not self.sent)


class ReminderBatchResult(BaseModel):
    runs: List[ReminderRunResult]
    sent: int
    failed: int
    ok: bool
