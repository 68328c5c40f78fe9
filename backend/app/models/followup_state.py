"""Per (patient, last completed booking) record of which re-engagement messages went out."""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.sql import func

from app.db.base import Base


class FollowupState(Base):
    __tablename__ = "followup_states"

    id = Column(Integer, primary_key=True, autoincrement=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    practitioner_id = Column(Integer, ForeignKey("practitioners.id"), nullable=False)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False)
    followup_15_sent_at = Column(DateTime, nullable=True)
    followup_30_sent_at = Column(DateTime, nullable=True)
    followup_60_sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (UniqueConstraint("patient_id", "booking_id", name="uq_followup_patient_booking"),)


def marker_column(days: int) -> str:
    return f"followup_{days}_sent_at"
