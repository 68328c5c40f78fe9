import os
from datetime import date, datetime, time

# Settings are read at import time; point them at throwaway values before importing app code
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["APP_TIMEZONE"] = "America/Mexico_City"
os.environ["BASE_URL"] = "https://example.test"
os.environ["CALENDAR_DOMAIN"] = "example.test"
os.environ["RESEND_API_KEY"] = ""
os.environ["TWILIO_ACCOUNT_SID"] = ""
os.environ["TWILIO_AUTH_TOKEN"] = ""

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.db.base import Base  # noqa: E402
from app.models import AvailabilityWindow, Booking, Patient, Practitioner  # noqa: E402
from app.services.booking_service import session_link_for  # noqa: E402
from app.services.notifications.types import (  # noqa: E402
    ChannelOutcome,
    DeliveryResult,
    DispatchReport,
)

# 2030-01-07 is a Monday
MONDAY = date(2030, 1, 7)
SUNDAY_BEFORE = date(2030, 1, 6)
TUESDAY = date(2030, 1, 8)


class FakeDispatcher:
    """Records dispatch()/deliver() calls. deliver() reports `outcome` for one email send."""

    def __init__(self, outcome: ChannelOutcome = ChannelOutcome.SENT):
        self.outcome = outcome
        self.dispatched: list[tuple[str, object, object]] = []
        self.delivered: list[tuple[str, object, object]] = []

    def dispatch(self, event, booking, parties):
        self.dispatched.append((event, booking, parties))
        return None

    def deliver(self, event, booking, parties):
        self.delivered.append((event, booking, parties))
        report = DispatchReport(event=event, booking_id=booking.id)
        report.results.append(DeliveryResult("patient", "email", self.outcome))
        return report

    def events(self) -> list[str]:
        return [e for e, _, _ in self.dispatched]

    def delivered_events(self) -> list[str]:
        return [e for e, _, _ in self.delivered]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def dispatcher() -> FakeDispatcher:
    return FakeDispatcher()


@pytest.fixture
def patient(db) -> Patient:
    row = Patient(name="Ana Lopez", email="ana@example.test", phone="5512345678")
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def other_patient(db) -> Patient:
    row = Patient(name="Luis Perez", email="luis@example.test", phone=None)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def practitioner(db) -> Practitioner:
    """Practitioner working Mondays 09:00-12:00."""
    row = Practitioner(name="Dra. Maria Ruiz", email="maria@example.test", phone="+52 55 8765 4321")
    db.add(row)
    db.commit()
    db.add(
        AvailabilityWindow(
            practitioner_id=row.id,
            day_of_week=0,
            start_time=time(9, 0),
            end_time=time(12, 0),
        )
    )
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def other_practitioner(db) -> Practitioner:
    """Second practitioner, also working Mondays 09:00-12:00."""
    row = Practitioner(name="Dr. Jorge Diaz", email="jorge@example.test", phone=None)
    db.add(row)
    db.commit()
    db.add(
        AvailabilityWindow(
            practitioner_id=row.id,
            day_of_week=0,
            start_time=time(9, 0),
            end_time=time(12, 0),
        )
    )
    db.commit()
    db.refresh(row)
    return row


def make_booking(db, patient, practitioner, day: date, at: time, status: str = "confirmed", **extra) -> Booking:
    """Insert a booking directly, bypassing the state machine (for scan and fixture setup)."""
    row = Booking(
        patient_id=patient.id,
        practitioner_id=practitioner.id,
        slot_date=day,
        slot_time=at,
        status=status,
        session_link=session_link_for(patient.id, practitioner.id),
        **extra,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(day, time(hour, minute))
