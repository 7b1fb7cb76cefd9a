"""
Test configuration and fixtures
"""
import os

# The app engine is built at import time; keep it off the production database
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from datetime import date, datetime, time, timedelta
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from appointment_desk.main import app
from appointment_desk.api.deps import get_notification_service
from appointment_desk.core.database import Base, get_db
from appointment_desk.core.exceptions import NotificationDispatchFailure
from appointment_desk.models.models import AppointmentSlot, Order, Service, User
from appointment_desk.utils.slot_manager import BusinessHours


# Create an in-memory SQLite database for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeNotifier:
    """Records messages instead of sending them; can be told to fail for some appointments."""

    def __init__(self):
        self.reminders = []
        self.confirmations = []
        self.fail_for = set()

    def send_reminder(self, appointment, lead_hours, config):
        if appointment.id in self.fail_for:
            raise NotificationDispatchFailure("SMTP unreachable")
        self.reminders.append((appointment.id, lead_hours))
        return ["email"]

    def send_confirmation(self, appointment, config):
        if appointment.id in self.fail_for:
            raise NotificationDispatchFailure("SMTP unreachable")
        self.confirmations.append(appointment.id)
        return ["email"]


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture(scope="function")
def client(db, notifier):
    """Create a test client with overridden database and notification dependencies"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_service] = lambda: notifier
    with TestClient(app=app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def weekday_hours():
    """Mon-Fri, two one-hour windows a day"""
    windows = [(time(9, 0), time(10, 0)), (time(10, 0), time(11, 0))]
    return BusinessHours({weekday: list(windows) for weekday in range(5)})


@pytest.fixture
def test_user(db):
    user = User(name="Awa Traore", email="awa@example.com", phone="+22990000001")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def other_user(db):
    user = User(name="Koffi Mensah", email="koffi@example.com")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def test_service(db):
    service = Service(name="Visa assistance")
    db.add(service)
    db.commit()
    db.refresh(service)
    return service


@pytest.fixture
def test_order(db, test_service):
    order = Order(reference="ORD-0001", service_id=test_service.id)
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


@pytest.fixture
def make_slot(db):
    """Factory for slots; defaults to a free single-place slot two days ahead"""
    def _make(day=None, start=time(10, 0), end=time(11, 0), max_bookings=1, current_bookings=0, is_available=True):
        slot = AppointmentSlot(
            date=day or date.today() + timedelta(days=2),
            start_time=start,
            end_time=end,
            is_available=is_available,
            max_bookings=max_bookings,
            current_bookings=current_bookings,
        )
        db.add(slot)
        db.commit()
        db.refresh(slot)
        return slot
    return _make


@pytest.fixture
def test_slot(make_slot):
    return make_slot()


def fixed_clock(moment: datetime):
    return lambda: moment
