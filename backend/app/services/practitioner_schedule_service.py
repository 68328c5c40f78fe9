"""Practitioner-facing management of weekly windows and blackout ranges."""
import logging
from datetime import date, time

from sqlalchemy.orm import Session

from app.core.errors import NotFound, ValidationFailed
from app.models.practitioner import AvailabilityWindow, BlackoutRange, Practitioner

logger = logging.getLogger(__name__)


def _require_practitioner(db: Session, practitioner_id: int) -> Practitioner:
    practitioner = db.get(Practitioner, practitioner_id)
    if practitioner is None:
        raise NotFound(f"Practitioner {practitioner_id} not found")
    return practitioner


def list_windows(db: Session, practitioner_id: int) -> list[AvailabilityWindow]:
    _require_practitioner(db, practitioner_id)
    return (
        db.query(AvailabilityWindow)
        .filter(AvailabilityWindow.practitioner_id == practitioner_id)
        .order_by(AvailabilityWindow.day_of_week.asc(), AvailabilityWindow.start_time.asc())
        .all()
    )


def add_window(db: Session, practitioner_id: int, day_of_week: int, start_time: time, end_time: time) -> AvailabilityWindow:
    _require_practitioner(db, practitioner_id)
    if not 0 <= day_of_week <= 6:
        raise ValidationFailed("day_of_week must be between 0 (Monday) and 6 (Sunday)")
    if start_time >= end_time:
        raise ValidationFailed("start_time must be before end_time")
    row = AvailabilityWindow(
        practitioner_id=practitioner_id,
        day_of_week=day_of_week,
        start_time=start_time,
        end_time=end_time,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("Practitioner %s: added window day=%s %s-%s", practitioner_id, day_of_week, start_time, end_time)
    return row


def delete_window(db: Session, practitioner_id: int, window_id: int) -> None:
    row = (
        db.query(AvailabilityWindow)
        .filter(AvailabilityWindow.id == window_id, AvailabilityWindow.practitioner_id == practitioner_id)
        .first()
    )
    if row is None:
        raise NotFound(f"Window {window_id} not found")
    db.delete(row)
    db.commit()


def list_blackouts(db: Session, practitioner_id: int) -> list[BlackoutRange]:
    _require_practitioner(db, practitioner_id)
    return (
        db.query(BlackoutRange)
        .filter(BlackoutRange.practitioner_id == practitioner_id)
        .order_by(BlackoutRange.start_date.asc())
        .all()
    )


def add_blackout(
    db: Session,
    practitioner_id: int,
    start_date: date,
    end_date: date | None = None,
    reason: str | None = None,
) -> BlackoutRange:
    """Block [start_date, end_date] inclusive. A missing end_date blocks start_date only."""
    _require_practitioner(db, practitioner_id)
    end_date = end_date or start_date
    if end_date < start_date:
        raise ValidationFailed("end_date must not be before start_date")
    row = BlackoutRange(
        practitioner_id=practitioner_id,
        start_date=start_date,
        end_date=end_date,
        reason=(reason or "").strip() or None,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("Practitioner %s: blackout %s..%s", practitioner_id, start_date, end_date)
    return row


def delete_blackout(db: Session, practitioner_id: int, blackout_id: int) -> None:
    row = (
        db.query(BlackoutRange)
        .filter(BlackoutRange.id == blackout_id, BlackoutRange.practitioner_id == practitioner_id)
        .first()
    )
    if row is None:
        raise NotFound(f"Blackout {blackout_id} not found")
    db.delete(row)
    db.commit()
