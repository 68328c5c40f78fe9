"""
Scheduler scan bodies: reconciliation (missed sessions), reminders and follow-ups.

Each function takes an open session and an explicit `now`, does one pass and returns how
many bookings it acted on. Notifications here are delivered synchronously (this already
runs off the request path) so the marker can depend on the outcome: when every attempted
send failed the marker stays unset and the next tick retries.
"""
import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import slot_end, slot_start
from app.core.constants import (
    EVENT_REMINDER,
    FOLLOWUP_MILESTONES,
    OPEN_STATUSES,
    REMINDER_WINDOW_MAX_MINUTES,
    REMINDER_WINDOW_MIN_MINUTES,
    STATUS_COMPLETED,
    followup_event,
)
from app.models.booking import Booking
from app.models.followup_state import FollowupState, marker_column
from app.services.booking_service import mark_missed
from app.services.notifications.types import BookingParties, BookingSnapshot

logger = logging.getLogger(__name__)


def run_reconciliation(db: Session, now: datetime) -> int:
    """Open bookings whose hour has fully elapsed become missed. No notification."""
    candidates = (
        db.query(Booking)
        .filter(Booking.status.in_(OPEN_STATUSES), Booking.slot_date <= now.date())
        .order_by(Booking.slot_date.asc(), Booking.slot_time.asc())
        .all()
    )
    marked = 0
    for b in candidates:
        if slot_end(b.slot_date, b.slot_time) > now:
            continue
        if mark_missed(db, b.id):
            marked += 1
            logger.info("Booking %s marked missed (%s %s)", b.id, b.slot_date, b.slot_time)
    return marked


def run_reminders(db: Session, dispatcher, now: datetime, heartbeat=None) -> int:
    """Remind both parties of open bookings starting 25-35 minutes from now, once per booking."""
    earliest = now + timedelta(minutes=REMINDER_WINDOW_MIN_MINUTES)
    latest = now + timedelta(minutes=REMINDER_WINDOW_MAX_MINUTES)
    candidates = (
        db.query(Booking)
        .filter(
            Booking.status.in_(OPEN_STATUSES),
            Booking.reminder_sent_at.is_(None),
            Booking.slot_date >= earliest.date(),
            Booking.slot_date <= latest.date(),
        )
        .all()
    )
    sent = 0
    for b in candidates:
        if not earliest <= slot_start(b.slot_date, b.slot_time) <= latest:
            continue
        if heartbeat is not None:
            heartbeat()
        snapshot = BookingSnapshot.from_booking(b)
        report = dispatcher.deliver(EVENT_REMINDER, snapshot, BookingParties.load(db, b))
        if report.all_failed:
            logger.warning("Reminder for booking %s: every send failed; will retry next tick", b.id)
            continue
        updated = (
            db.query(Booking)
            .filter(
                Booking.id == b.id,
                Booking.reminder_sent_at.is_(None),
                Booking.slot_date == snapshot.slot_date,
                Booking.slot_time == snapshot.slot_time,
            )
            .update({Booking.reminder_sent_at: now}, synchronize_session=False)
        )
        db.commit()
        sent += updated
    return sent


def _latest_completed(db: Session) -> dict[tuple[int, int], Booking]:
    latest: dict[tuple[int, int], Booking] = {}
    rows = (
        db.query(Booking)
        .filter(Booking.status == STATUS_COMPLETED)
        .order_by(Booking.slot_date.asc(), Booking.slot_time.asc())
        .all()
    )
    for b in rows:
        latest[(b.patient_id, b.practitioner_id)] = b
    return latest


def _state_for(db: Session, booking: Booking) -> FollowupState:
    state = (
        db.query(FollowupState)
        .filter(FollowupState.patient_id == booking.patient_id, FollowupState.booking_id == booking.id)
        .first()
    )
    if state is not None:
        return state
    state = FollowupState(
        patient_id=booking.patient_id,
        practitioner_id=booking.practitioner_id,
        booking_id=booking.id,
    )
    db.add(state)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        state = (
            db.query(FollowupState)
            .filter(FollowupState.patient_id == booking.patient_id, FollowupState.booking_id == booking.id)
            .one()
        )
    return state


def run_followups(db: Session, dispatcher, now: datetime, heartbeat=None) -> int:
    """
    For each patient/practitioner pair, measure days since their latest completed session and
    send every 15/30/60-day message that is due and not yet sent. A newer completed session
    starts a fresh track; each practitioner is tracked separately.
    """
    sent = 0
    for b in _latest_completed(db).values():
        days = (now.date() - b.slot_date).days
        due = [m for m in FOLLOWUP_MILESTONES if days >= m]
        if not due:
            continue
        state = _state_for(db, b)
        snapshot = BookingSnapshot.from_booking(b)
        parties = BookingParties.load(db, b)
        for m in due:
            column = getattr(FollowupState, marker_column(m))
            if getattr(state, marker_column(m)) is not None:
                continue
            if heartbeat is not None:
                heartbeat()
            report = dispatcher.deliver(followup_event(m), snapshot, parties)
            if report.all_failed:
                logger.warning("Follow-up %s for booking %s: every send failed; will retry", m, b.id)
                continue
            updated = (
                db.query(FollowupState)
                .filter(FollowupState.id == state.id, column.is_(None))
                .update({column: now}, synchronize_session=False)
            )
            db.commit()
            sent += updated
    return sent
