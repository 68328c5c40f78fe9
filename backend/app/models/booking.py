"""
One-hour session between a patient and a practitioner.

At most one non-cancelled booking per (practitioner, slot_date, slot_time); enforced by the
partial unique index uq_bookings_active_slot so concurrent inserts cannot double-book.
Marker columns (reminder_sent_at, *_joined_at) are set once and never cleared except by reschedule.
"""
from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, Time, text
from sqlalchemy.sql import func

from app.core.constants import SOURCE_PATIENT, STATUS_PENDING
from app.db.base import Base


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    practitioner_id = Column(Integer, ForeignKey("practitioners.id"), nullable=False, index=True)
    slot_date = Column(Date, nullable=False)
    slot_time = Column(Time, nullable=False)
    status = Column(String(16), nullable=False, default=STATUS_PENDING, server_default=STATUS_PENDING)
    source = Column(String(16), nullable=False, default=SOURCE_PATIENT, server_default=SOURCE_PATIENT)
    note = Column(Text, nullable=True)
    motive = Column(Text, nullable=True)
    # Practitioner's private session notes; never shown to the patient
    practitioner_note = Column(Text, nullable=True)
    session_link = Column(String(512), nullable=True)
    patient_joined_at = Column(DateTime, nullable=True)
    practitioner_joined_at = Column(DateTime, nullable=True)
    reminder_sent_at = Column(DateTime, nullable=True)
    # Bumped on every reschedule/cancel so calendar clients replace the earlier invite
    calendar_sequence = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


Index(
    "uq_bookings_active_slot",
    Booking.practitioner_id,
    Booking.slot_date,
    Booking.slot_time,
    unique=True,
    postgresql_where=text("status <> 'cancelled'"),
    sqlite_where=text("status <> 'cancelled'"),
)
Index("ix_bookings_status_slot", Booking.status, Booking.slot_date, Booking.slot_time)
