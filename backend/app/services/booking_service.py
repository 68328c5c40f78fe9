"""
Booking lifecycle: pending -> confirmed -> completed, with cancelled and missed as the
other terminal states.

Every transition re-validates against current storage and commits before notifying.
Notifications are handed to the dispatcher as snapshots after commit, so a slow or failing
channel never affects the transition. Slot uniqueness among active bookings is enforced by
the uq_bookings_active_slot index; losing that race surfaces as SlotUnavailable.
"""
import logging
from datetime import date, datetime, time

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import hours_until, local_now
from app.core.constants import (
    CANCEL_LEAD_HOURS,
    EVENT_CANCELLED,
    EVENT_CREATED,
    EVENT_RESCHEDULED,
    OPEN_STATUSES,
    PARTIES,
    PARTY_PATIENT,
    REASON_ALREADY_BOOKED,
    RESCHEDULE_LEAD_HOURS,
    SOURCE_PATIENT,
    SOURCE_PAYMENT,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_CONFIRMED,
    STATUS_MISSED,
    STATUS_PENDING,
)
from app.core.errors import (
    InvalidStateForTransition,
    LeadTimeViolation,
    NotFound,
    SlotUnavailable,
    ValidationFailed,
)
from app.models.booking import Booking
from app.models.patient import Patient
from app.services.availability_service import is_slot_bookable
from app.services.notifications.types import BookingParties, BookingSnapshot

logger = logging.getLogger(__name__)


def session_link_for(patient_id: int, practitioner_id: int) -> str:
    """Video room path shared by every session between the same two people."""
    return f"/perfil?sala=sesion-{patient_id}-{practitioner_id}"


def booking_to_dict(b: Booking) -> dict:
    return {
        "booking_id": b.id,
        "patient_id": b.patient_id,
        "practitioner_id": b.practitioner_id,
        "date": b.slot_date.isoformat(),
        "time": b.slot_time.strftime("%H:%M"),
        "status": b.status,
        "source": b.source,
        "note": b.note,
        "motive": b.motive,
        "session_link": b.session_link,
        "patient_joined_at": b.patient_joined_at.isoformat() if b.patient_joined_at else None,
        "practitioner_joined_at": b.practitioner_joined_at.isoformat() if b.practitioner_joined_at else None,
    }


def _notify(dispatcher, db: Session, event: str, booking: Booking) -> None:
    if dispatcher is None:
        return
    try:
        dispatcher.dispatch(event, BookingSnapshot.from_booking(booking), BookingParties.load(db, booking))
    except Exception as e:
        # Transition is already committed
        logger.exception("Booking %s: could not queue %s notification: %s", booking.id, event, e)


def _commit(db: Session, conflict_detail: str | None = None) -> None:
    """Commit or roll back. IntegrityError becomes SlotUnavailable when a conflict message is given."""
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        if conflict_detail is None:
            raise
        raise SlotUnavailable(conflict_detail, REASON_ALREADY_BOOKED) from None
    except SQLAlchemyError:
        db.rollback()
        raise


def _load(db: Session, booking_id: int, patient_id: int | None = None) -> Booking:
    booking = db.query(Booking).filter(Booking.id == booking_id).with_for_update().first()
    if booking is None or (patient_id is not None and booking.patient_id != patient_id):
        raise NotFound(f"Booking {booking_id} not found")
    return booking


def _require_open(booking: Booking, action: str) -> None:
    if booking.status not in OPEN_STATUSES:
        raise InvalidStateForTransition(
            f"Cannot {action} a booking that is {booking.status}",
            current_status=booking.status,
        )


def get_booking(db: Session, booking_id: int) -> Booking:
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise NotFound(f"Booking {booking_id} not found")
    return booking


def list_bookings(db: Session, patient_id: int | None = None, practitioner_id: int | None = None) -> list[Booking]:
    q = db.query(Booking)
    if patient_id is not None:
        q = q.filter(Booking.patient_id == patient_id)
    if practitioner_id is not None:
        q = q.filter(Booking.practitioner_id == practitioner_id)
    return q.order_by(Booking.slot_date.asc(), Booking.slot_time.asc()).all()


def _load_for_practitioner(db: Session, booking_id: int, practitioner_id: int) -> Booking:
    booking = db.get(Booking, booking_id)
    if booking is None or booking.practitioner_id != practitioner_id:
        raise NotFound(f"Booking {booking_id} not found")
    return booking


def get_booking_note(db: Session, booking_id: int, practitioner_id: int) -> str:
    """The practitioner's private note on one of their bookings ('' when none)."""
    return _load_for_practitioner(db, booking_id, practitioner_id).practitioner_note or ""


def update_booking_note(db: Session, booking_id: int, practitioner_id: int, text: str | None) -> str:
    """Replace the practitioner's note. Allowed in any status; an empty text clears it."""
    booking = _load_for_practitioner(db, booking_id, practitioner_id)
    booking.practitioner_note = text if text and text.strip() else None
    _commit(db)
    logger.info("Booking %s: practitioner note updated (%s chars)", booking_id, len(text or ""))
    return booking.practitioner_note or ""


def has_prior_booking(db: Session, patient_id: int, practitioner_id: int) -> bool:
    row = (
        db.query(Booking.id)
        .filter(Booking.patient_id == patient_id, Booking.practitioner_id == practitioner_id)
        .first()
    )
    return row is not None


def _insert_booking(
    db: Session,
    patient_id: int,
    practitioner_id: int,
    slot_date: date,
    slot_time: time,
    note: str | None,
    motive: str | None,
    source: str,
    now: datetime,
) -> Booking:
    if db.get(Patient, patient_id) is None:
        raise NotFound(f"Patient {patient_id} not found")
    check = is_slot_bookable(db, practitioner_id, slot_date, slot_time, now=now)
    if not check:
        raise SlotUnavailable(
            f"Slot {slot_date.isoformat()} {slot_time.strftime('%H:%M')} is not available: {check.reason}",
            check.reason,
        )
    first_with_practitioner = not has_prior_booking(db, patient_id, practitioner_id)
    booking = Booking(
        patient_id=patient_id,
        practitioner_id=practitioner_id,
        slot_date=slot_date,
        slot_time=slot_time,
        status=STATUS_PENDING,
        source=source,
        note=(note or "").strip() or None,
        motive=((motive or "").strip() or None) if first_with_practitioner else None,
        session_link=session_link_for(patient_id, practitioner_id),
        calendar_sequence=0,
    )
    db.add(booking)
    _commit(db, conflict_detail=f"Slot {slot_date.isoformat()} {slot_time.strftime('%H:%M')} was just taken")
    db.refresh(booking)
    logger.info(
        "Booking %s created: patient=%s practitioner=%s %s %s (source=%s)",
        booking.id, patient_id, practitioner_id, slot_date, slot_time, source,
    )
    return booking


def create_booking(
    db: Session,
    patient_id: int,
    practitioner_id: int,
    slot_date: date,
    slot_time: time,
    note: str | None = None,
    motive: str | None = None,
    dispatcher=None,
    now: datetime | None = None,
) -> Booking:
    """(none) -> pending. Re-checks the slot against storage, persists, then notifies 'created'."""
    now = now or local_now()
    booking = _insert_booking(db, patient_id, practitioner_id, slot_date, slot_time, note, motive, SOURCE_PATIENT, now)
    _notify(dispatcher, db, EVENT_CREATED, booking)
    return booking


def confirm_booking(db: Session, booking_id: int, patient_id: int | None = None) -> Booking:
    """pending -> confirmed. Already-confirmed bookings are returned unchanged (payment retries)."""
    booking = _load(db, booking_id, patient_id)
    if booking.status == STATUS_CONFIRMED:
        return booking
    if booking.status != STATUS_PENDING:
        raise InvalidStateForTransition(
            f"Cannot confirm a booking that is {booking.status}",
            current_status=booking.status,
        )
    db.query(Booking).filter(Booking.id == booking_id, Booking.status == STATUS_PENDING).update(
        {Booking.status: STATUS_CONFIRMED}, synchronize_session=False
    )
    _commit(db)
    db.refresh(booking)
    logger.info("Booking %s confirmed", booking_id)
    return booking


def create_paid_booking(
    db: Session,
    patient_id: int,
    practitioner_id: int,
    slot_date: date,
    slot_time: time,
    motive: str | None = None,
    dispatcher=None,
    now: datetime | None = None,
) -> Booking:
    """Booking from a completed payment: created (source=payment) and confirmed, 'created' sent once."""
    now = now or local_now()
    booking = _insert_booking(db, patient_id, practitioner_id, slot_date, slot_time, None, motive, SOURCE_PAYMENT, now)
    booking = confirm_booking(db, booking.id)
    _notify(dispatcher, db, EVENT_CREATED, booking)
    return booking


def reschedule_booking(
    db: Session,
    booking_id: int,
    new_date: date,
    new_time: time,
    patient_id: int | None = None,
    dispatcher=None,
    now: datetime | None = None,
) -> Booking:
    """pending|confirmed -> pending at a new slot, at least 24h before the original start."""
    now = now or local_now()
    booking = _load(db, booking_id, patient_id)
    _require_open(booking, "reschedule")
    lead = hours_until(booking.slot_date, booking.slot_time, now)
    if lead < RESCHEDULE_LEAD_HOURS:
        raise LeadTimeViolation(
            f"Sessions can only be rescheduled at least {RESCHEDULE_LEAD_HOURS} hours in advance",
            required_hours=RESCHEDULE_LEAD_HOURS,
            hours_until=lead,
        )
    check = is_slot_bookable(db, booking.practitioner_id, new_date, new_time, exclude_booking_id=booking.id, now=now)
    if not check:
        raise SlotUnavailable(
            f"Slot {new_date.isoformat()} {new_time.strftime('%H:%M')} is not available: {check.reason}",
            check.reason,
        )
    old = (booking.slot_date, booking.slot_time)
    booking.slot_date = new_date
    booking.slot_time = new_time
    booking.status = STATUS_PENDING
    booking.reminder_sent_at = None
    booking.calendar_sequence = (booking.calendar_sequence or 0) + 1
    _commit(db, conflict_detail=f"Slot {new_date.isoformat()} {new_time.strftime('%H:%M')} was just taken")
    db.refresh(booking)
    logger.info("Booking %s rescheduled %s %s -> %s %s", booking.id, old[0], old[1], new_date, new_time)
    _notify(dispatcher, db, EVENT_RESCHEDULED, booking)
    return booking


def cancel_booking(
    db: Session,
    booking_id: int,
    patient_id: int | None = None,
    dispatcher=None,
    now: datetime | None = None,
) -> Booking:
    """pending|confirmed -> cancelled, at least 36h before start. Frees the slot."""
    now = now or local_now()
    booking = _load(db, booking_id, patient_id)
    _require_open(booking, "cancel")
    lead = hours_until(booking.slot_date, booking.slot_time, now)
    if lead < CANCEL_LEAD_HOURS:
        raise LeadTimeViolation(
            f"Sessions can only be cancelled at least {CANCEL_LEAD_HOURS} hours in advance",
            required_hours=CANCEL_LEAD_HOURS,
            hours_until=lead,
        )
    booking.status = STATUS_CANCELLED
    booking.calendar_sequence = (booking.calendar_sequence or 0) + 1
    _commit(db)
    db.refresh(booking)
    logger.info("Booking %s cancelled (%.1fh before start)", booking.id, lead)
    _notify(dispatcher, db, EVENT_CANCELLED, booking)
    return booking


def register_join(db: Session, booking_id: int, party: str, now: datetime | None = None) -> str:
    """
    Stamp that a party entered the session room; promote to completed once both have.
    Both writes are conditional, so repeated or concurrent joins promote exactly once.
    """
    if party not in PARTIES:
        raise ValidationFailed(f"party must be one of: {', '.join(PARTIES)}")
    now = now or local_now()
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise NotFound(f"Booking {booking_id} not found")
    if booking.status == STATUS_COMPLETED:
        return booking.status
    _require_open(booking, "join")

    column = Booking.patient_joined_at if party == PARTY_PATIENT else Booking.practitioner_joined_at
    db.query(Booking).filter(
        Booking.id == booking_id,
        Booking.status.in_(OPEN_STATUSES),
        column.is_(None),
    ).update({column: now}, synchronize_session=False)
    promoted = (
        db.query(Booking)
        .filter(
            Booking.id == booking_id,
            Booking.status.in_(OPEN_STATUSES),
            Booking.patient_joined_at.isnot(None),
            Booking.practitioner_joined_at.isnot(None),
        )
        .update({Booking.status: STATUS_COMPLETED}, synchronize_session=False)
    )
    _commit(db)
    db.refresh(booking)
    if promoted:
        logger.info("Booking %s completed (both parties joined)", booking_id)
    return booking.status


def mark_missed(db: Session, booking_id: int) -> bool:
    """pending|confirmed -> missed. Returns False if the booking already left those states."""
    updated = (
        db.query(Booking)
        .filter(Booking.id == booking_id, Booking.status.in_(OPEN_STATUSES))
        .update({Booking.status: STATUS_MISSED}, synchronize_session=False)
    )
    _commit(db)
    return updated == 1
