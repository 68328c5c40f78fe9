"""Practitioner plus the recurring weekly windows and blackout ranges that define their availability."""
from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, Time
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base


class Practitioner(Base):
    __tablename__ = "practitioners"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(128), nullable=False)
    email = Column(String(256), nullable=True)
    phone = Column(String(32), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    windows = relationship("AvailabilityWindow", back_populates="practitioner", cascade="all, delete-orphan")
    blackouts = relationship("BlackoutRange", back_populates="practitioner", cascade="all, delete-orphan")


class AvailabilityWindow(Base):
    """Recurring weekly working window. day_of_week: 0=Monday .. 6=Sunday."""

    __tablename__ = "availability_windows"

    id = Column(Integer, primary_key=True, autoincrement=True)
    practitioner_id = Column(Integer, ForeignKey("practitioners.id", ondelete="CASCADE"), nullable=False)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    practitioner = relationship("Practitioner", back_populates="windows")


class BlackoutRange(Base):
    """Inclusive date range with no availability (vacation). end_date NULL means a single day."""

    __tablename__ = "blackout_ranges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    practitioner_id = Column(Integer, ForeignKey("practitioners.id", ondelete="CASCADE"), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    practitioner = relationship("Practitioner", back_populates="blackouts")


Index("ix_availability_windows_practitioner_day", AvailabilityWindow.practitioner_id, AvailabilityWindow.day_of_week)
Index("ix_blackout_ranges_practitioner_start", BlackoutRange.practitioner_id, BlackoutRange.start_date)
