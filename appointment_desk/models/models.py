from sqlalchemy import Column, Integer, String, DateTime, Date, Time, ForeignKey, Text, Boolean, JSON, UniqueConstraint, Index, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from appointment_desk.core.database import Base
from appointment_desk.schemas.schemas import GuestSubject, RegisteredSubject


class AppointmentStatus:
    """Appointment status constants"""
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    ACTIVE = (SCHEDULED, CONFIRMED)
    ALL = (SCHEDULED, CONFIRMED, CANCELLED, COMPLETED)


class SubjectType:
    REGISTERED = "registered"
    GUEST = "guest"


# ==================== REFERENCE MODELS ====================

class User(Base):
    """Registered customer of the agency. Accounts are managed elsewhere."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    appointments = relationship("Appointment", back_populates="user")


class Service(Base):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    appointments = relationship("Appointment", back_populates="service")


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    reference = Column(String, unique=True, nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    service = relationship("Service")
    appointments = relationship("Appointment", back_populates="order")


# ==================== SLOT & APPOINTMENT MODELS ====================

class AppointmentSlot(Base):
    """
    A bookable time window on a calendar day.
    current_bookings is only ever written by the booking ledger.
    """
    __tablename__ = "appointment_slots"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)
    max_bookings = Column(Integer, nullable=False, default=1)
    current_bookings = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    appointments = relationship("Appointment", back_populates="slot")

    __table_args__ = (
        UniqueConstraint("date", "start_time", name="uq_appointment_slot_start"),
        Index("ix_appointment_slots_date_available", "date", "is_available"),
        CheckConstraint(
            "current_bookings >= 0 AND current_bookings <= max_bookings",
            name="ck_appointment_slot_capacity",
        ),
    )

    @property
    def is_bookable(self) -> bool:
        return bool(self.is_available) and self.current_bookings < self.max_bookings

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.date, self.start_time)

    @property
    def ends_at(self) -> datetime:
        return datetime.combine(self.date, self.end_time)


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    appointment_slot_id = Column(Integer, ForeignKey("appointment_slots.id"), nullable=False, index=True)

    # Subject: registered user or guest, see `subject`
    subject_type = Column(String, nullable=False, default=SubjectType.REGISTERED)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    guest_name = Column(String, nullable=True)
    guest_email = Column(String, nullable=True)
    guest_phone = Column(String, nullable=True)

    order_id = Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=True)
    status = Column(String, nullable=False, default=AppointmentStatus.SCHEDULED, index=True)  # scheduled, confirmed, cancelled, completed
    notes = Column(Text, nullable=True)
    reminder_sent_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    slot = relationship("AppointmentSlot", back_populates="appointments")
    user = relationship("User", back_populates="appointments")
    service = relationship("Service", back_populates="appointments")
    order = relationship("Order", back_populates="appointments")
    reminders = relationship("ReminderDelivery", back_populates="appointment", cascade="all, delete-orphan")

    @property
    def subject(self):
        if self.subject_type == SubjectType.GUEST:
            return GuestSubject(name=self.guest_name, email=self.guest_email, phone=self.guest_phone)
        return RegisteredSubject(user_id=self.user_id)

    @subject.setter
    def subject(self, value):
        if isinstance(value, GuestSubject):
            self.subject_type = SubjectType.GUEST
            self.user_id = None
            self.guest_name = value.name
            self.guest_email = value.email
            self.guest_phone = value.phone
        else:
            self.subject_type = SubjectType.REGISTERED
            self.user_id = value.user_id
            self.guest_name = None
            self.guest_email = None
            self.guest_phone = None

    @property
    def contact_name(self):
        if self.subject_type == SubjectType.GUEST:
            return self.guest_name
        return self.user.name if self.user else None

    @property
    def contact_email(self):
        if self.subject_type == SubjectType.GUEST:
            return self.guest_email
        return self.user.email if self.user else None

    @property
    def contact_phone(self):
        if self.subject_type == SubjectType.GUEST:
            return self.guest_phone
        return self.user.phone if self.user else None


# ==================== REMINDER MODELS ====================

class ReminderSettings(Base):
    """
    Appointment reminder configuration. A single row, created with
    defaults on first read (see services.reminder_settings).
    """
    __tablename__ = "appointment_reminder_settings"

    id = Column(Integer, primary_key=True, index=True)
    enabled = Column(Boolean, nullable=False, default=True)
    reminder_hours = Column(JSON, nullable=False, default=lambda: [24, 2])
    email_enabled = Column(Boolean, nullable=False, default=True)
    whatsapp_enabled = Column(Boolean, nullable=False, default=False)
    email_subject = Column(String(255), nullable=True)
    email_template = Column(Text, nullable=True)
    whatsapp_template = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ReminderDelivery(Base):
    """One row per reminder actually delivered for a given lead time."""
    __tablename__ = "appointment_reminders"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False, index=True)
    lead_hours = Column(Integer, nullable=False)
    channels_sent = Column(String, nullable=True)  # Comma-separated: "email,whatsapp"
    sent_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    appointment = relationship("Appointment", back_populates="reminders")

    __table_args__ = (
        UniqueConstraint("appointment_id", "lead_hours", name="uq_appointment_reminder_lead"),
    )
