"""
Plain data passed to the notification layer.

Dispatch runs on worker threads after the request's session is closed, so it receives
snapshots (BookingSnapshot, BookingParties) rather than ORM objects.
"""
from dataclasses import dataclass, field
from datetime import date, time
from enum import Enum

from sqlalchemy.orm import Session

from app.models.booking import Booking
from app.models.patient import Patient
from app.models.practitioner import Practitioner

ROLE_PATIENT = "patient"
ROLE_PRACTITIONER = "practitioner"


class ChannelOutcome(str, Enum):
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class Contact:
    name: str
    email: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class Recipient:
    role: str
    contact: Contact


@dataclass(frozen=True)
class BookingSnapshot:
    id: int | None
    patient_id: int
    practitioner_id: int
    slot_date: date
    slot_time: time
    status: str
    session_link: str | None = None
    calendar_sequence: int = 0
    note: str | None = None
    motive: str | None = None

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingSnapshot":
        return cls(
            id=booking.id,
            patient_id=booking.patient_id,
            practitioner_id=booking.practitioner_id,
            slot_date=booking.slot_date,
            slot_time=booking.slot_time,
            status=booking.status,
            session_link=booking.session_link,
            calendar_sequence=booking.calendar_sequence or 0,
            note=booking.note,
            motive=booking.motive,
        )


@dataclass(frozen=True)
class BookingParties:
    patient: Contact
    practitioner: Contact

    @classmethod
    def load(cls, db: Session, booking: Booking) -> "BookingParties":
        patient = db.get(Patient, booking.patient_id)
        practitioner = db.get(Practitioner, booking.practitioner_id)
        return cls(
            patient=_contact(patient),
            practitioner=_contact(practitioner),
        )


def _contact(row) -> Contact:
    if row is None:
        return Contact(name="")
    return Contact(
        name=row.name or "",
        email=(row.email or "").strip() or None,
        phone=(row.phone or "").strip() or None,
    )


@dataclass(frozen=True)
class CalendarAttachment:
    method: str  # PUBLISH or CANCEL
    content: str
    filename: str = "invite.ics"


@dataclass(frozen=True)
class Message:
    subject: str
    text: str
    html: str | None = None
    calendar: CalendarAttachment | None = None


@dataclass
class DeliveryResult:
    role: str
    channel: str
    outcome: ChannelOutcome
    error: str | None = None


@dataclass
class DispatchReport:
    event: str
    booking_id: int | None
    results: list[DeliveryResult] = field(default_factory=list)

    @property
    def attempted(self) -> list[DeliveryResult]:
        return [r for r in self.results if r.outcome != ChannelOutcome.SKIPPED]

    @property
    def sent(self) -> int:
        return sum(1 for r in self.results if r.outcome == ChannelOutcome.SENT)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.outcome == ChannelOutcome.FAILED)

    @property
    def all_failed(self) -> bool:
        """True when at least one send was attempted and none succeeded."""
        attempted = self.attempted
        return bool(attempted) and all(r.outcome == ChannelOutcome.FAILED for r in attempted)
