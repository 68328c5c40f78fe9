"""
Slot resolution for a practitioner on a given date.

Windows are recurring per weekday; each window expands into one-hour slots starting on the
first whole hour at or after the window start. Blackouts close the whole day. Active
(non-cancelled) bookings remove their slot. For today, only hours after the current hour
are offered.

is_slot_bookable() re-runs the negative checks for a single slot and is what the booking
state machine calls right before persisting, so a stale slot list can never be booked.
"""
from datetime import date, datetime, time, timedelta

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.clock import local_now, slot_start
from app.core.constants import (
    REASON_ALREADY_BOOKED,
    REASON_BLACKOUT,
    REASON_IN_PAST,
    REASON_NON_WORKING_DAY,
    REASON_NOT_ON_THE_HOUR,
    REASON_OUTSIDE_WINDOW,
    REASON_PAST_DATE,
    SLOT_MINUTES,
    STATUS_CANCELLED,
)
from app.core.errors import NotFound
from app.models.booking import Booking
from app.models.practitioner import AvailabilityWindow, BlackoutRange, Practitioner


class SlotResolution:
    """Result of generate_slots: ascending slot times, or a reason when the day is closed."""

    __slots__ = ("available", "slots", "reason")

    def __init__(self, *, available: bool, slots: list[time], reason: str | None = None):
        self.available = available
        self.slots = slots
        self.reason = reason

    def to_dict(self) -> dict:
        return {
            "available": self.available,
            "slots": [s.strftime("%H:%M") for s in self.slots],
            "reason": self.reason,
        }


class SlotCheck:
    __slots__ = ("bookable", "reason")

    def __init__(self, bookable: bool, reason: str | None = None):
        self.bookable = bookable
        self.reason = reason

    def __bool__(self) -> bool:
        return self.bookable


def _require_practitioner(db: Session, practitioner_id: int) -> Practitioner:
    practitioner = db.get(Practitioner, practitioner_id)
    if practitioner is None:
        raise NotFound(f"Practitioner {practitioner_id} not found")
    return practitioner


def in_blackout(db: Session, practitioner_id: int, day: date) -> bool:
    """True when day falls inside any blackout range (end_date NULL means start_date only)."""
    hit = (
        db.query(BlackoutRange.id)
        .filter(
            BlackoutRange.practitioner_id == practitioner_id,
            BlackoutRange.start_date <= day,
            or_(
                BlackoutRange.end_date >= day,
                (BlackoutRange.end_date.is_(None) & (BlackoutRange.start_date == day)),
            ),
        )
        .first()
    )
    return hit is not None


def windows_for_day(db: Session, practitioner_id: int, day: date) -> list[AvailabilityWindow]:
    return (
        db.query(AvailabilityWindow)
        .filter(
            AvailabilityWindow.practitioner_id == practitioner_id,
            AvailabilityWindow.day_of_week == day.weekday(),
        )
        .order_by(AvailabilityWindow.start_time.asc())
        .all()
    )


def expand_window(start: time, end: time) -> list[time]:
    """One-hour slots inside [start, end). Trailing partial hours are dropped."""
    cursor = datetime.combine(date.min, start)
    if cursor.minute or cursor.second:
        cursor = cursor.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
    limit = datetime.combine(date.min, end)
    out = []
    while cursor + timedelta(minutes=SLOT_MINUTES) <= limit:
        out.append(cursor.time())
        cursor += timedelta(minutes=SLOT_MINUTES)
    return out


def booked_times(db: Session, practitioner_id: int, day: date, exclude_booking_id: int | None = None) -> set[time]:
    q = db.query(Booking.slot_time).filter(
        Booking.practitioner_id == practitioner_id,
        Booking.slot_date == day,
        Booking.status != STATUS_CANCELLED,
    )
    if exclude_booking_id is not None:
        q = q.filter(Booking.id != exclude_booking_id)
    return {row[0] for row in q.all()}


def generate_slots(db: Session, practitioner_id: int, day: date, now: datetime | None = None) -> SlotResolution:
    _require_practitioner(db, practitioner_id)
    now = now or local_now()

    if day < now.date():
        return SlotResolution(available=False, slots=[], reason=REASON_PAST_DATE)
    if in_blackout(db, practitioner_id, day):
        return SlotResolution(available=False, slots=[], reason=REASON_BLACKOUT)
    windows = windows_for_day(db, practitioner_id, day)
    if not windows:
        return SlotResolution(available=False, slots=[], reason=REASON_NON_WORKING_DAY)

    candidates: set[time] = set()
    for w in windows:
        candidates.update(expand_window(w.start_time, w.end_time))
    candidates -= booked_times(db, practitioner_id, day)
    if day == now.date():
        candidates = {t for t in candidates if t.hour > now.hour}

    return SlotResolution(available=True, slots=sorted(candidates))


def is_slot_bookable(
    db: Session,
    practitioner_id: int,
    day: date,
    at: time,
    exclude_booking_id: int | None = None,
    now: datetime | None = None,
) -> SlotCheck:
    _require_practitioner(db, practitioner_id)
    now = now or local_now()

    if at.minute or at.second or at.microsecond:
        return SlotCheck(False, REASON_NOT_ON_THE_HOUR)
    if slot_start(day, at) <= now:
        return SlotCheck(False, REASON_IN_PAST)
    if in_blackout(db, practitioner_id, day):
        return SlotCheck(False, REASON_BLACKOUT)
    windows = windows_for_day(db, practitioner_id, day)
    if not any(at in expand_window(w.start_time, w.end_time) for w in windows):
        return SlotCheck(False, REASON_OUTSIDE_WINDOW)
    if at in booked_times(db, practitioner_id, day, exclude_booking_id=exclude_booking_id):
        return SlotCheck(False, REASON_ALREADY_BOOKED)
    return SlotCheck(True)


def get_calendar_overview(db: Session, practitioner_id: int, today: date | None = None) -> dict:
    """Weekdays with no window plus every blocked date from current/future blackouts."""
    _require_practitioner(db, practitioner_id)
    today = today or local_now().date()

    working = {
        row[0]
        for row in db.query(AvailabilityWindow.day_of_week)
        .filter(AvailabilityWindow.practitioner_id == practitioner_id)
        .distinct()
        .all()
    }
    non_working_days = [d for d in range(7) if d not in working]

    ranges = (
        db.query(BlackoutRange)
        .filter(
            BlackoutRange.practitioner_id == practitioner_id,
            or_(
                BlackoutRange.end_date >= today,
                (BlackoutRange.end_date.is_(None) & (BlackoutRange.start_date >= today)),
            ),
        )
        .order_by(BlackoutRange.start_date.asc())
        .all()
    )
    blocked: set[date] = set()
    for r in ranges:
        cursor = max(r.start_date, today)
        last = r.end_date or r.start_date
        while cursor <= last:
            blocked.add(cursor)
            cursor += timedelta(days=1)

    return {
        "non_working_days": non_working_days,
        "blocked_dates": [d.isoformat() for d in sorted(blocked)],
    }
