"""
Message copy per (event, recipient role).

Patient copy is supportive and points back to the catalogue when a session is lost;
practitioner copy is operational. Every message carries the session link.
"""
from html import escape

from app.config import settings
from app.core.constants import (
    EVENT_CANCELLED,
    EVENT_CREATED,
    EVENT_REMINDER,
    EVENT_RESCHEDULED,
    FOLLOWUP_EVENTS,
)
from app.services.calendar_invite import (
    ACTION_CANCEL,
    ACTION_CREATE,
    ACTION_UPDATE,
    build_invite,
    method_for,
)
from app.services.notifications.types import (
    ROLE_PATIENT,
    BookingParties,
    BookingSnapshot,
    CalendarAttachment,
    Message,
)

BRAND = "Psicologos en Red"

_CALENDAR_ACTIONS = {
    EVENT_CREATED: ACTION_CREATE,
    EVENT_RESCHEDULED: ACTION_UPDATE,
    EVENT_CANCELLED: ACTION_CANCEL,
}


def absolute_url(path: str | None) -> str:
    base = (settings.base_url or "").rstrip("/")
    if not path:
        return base
    if path.startswith("http://") or path.startswith("https://"):
        return path
    return f"{base}/{path.lstrip('/')}"


def catalogue_url() -> str:
    return absolute_url("/catalogo")


def _when(b: BookingSnapshot) -> str:
    return f"{b.slot_date.isoformat()} at {b.slot_time.strftime('%H:%M')}"


def _followup_days(event: str) -> int:
    return int(event.split("-", 1)[1])


def _lines(event: str, role: str, b: BookingSnapshot, parties: BookingParties) -> tuple[str, list[str]]:
    patient = parties.patient.name or "your patient"
    practitioner = parties.practitioner.name or "your therapist"
    link = absolute_url(b.session_link)
    when = _when(b)
    is_patient = role == ROLE_PATIENT

    if event == EVENT_CREATED:
        if is_patient:
            return f"Your session with {practitioner} is booked", [
                f"Your session with {practitioner} is scheduled for {when}.",
                f"Join here when it is time: {link}",
            ]
        lines = [f"{patient} booked a session with you for {when}."]
        if b.motive:
            lines.append(f"Reason for consultation: {b.motive}")
        if b.note:
            lines.append(f"Note: {b.note}")
        lines.append(f"Session room: {link}")
        return f"New session booked: {patient}", lines

    if event == EVENT_RESCHEDULED:
        other = practitioner if is_patient else patient
        return f"Session rescheduled to {when}", [
            f"Your session with {other} was moved to {when}.",
            f"Session room: {link}",
        ]

    if event == EVENT_CANCELLED:
        if is_patient:
            return f"Your session with {practitioner} was cancelled", [
                f"Your session with {practitioner} on {when} has been cancelled.",
                "We know plans change. Taking care of yourself is still worth it, and we are here when you are ready.",
                "If you paid for this session, your refund will be processed to the original payment method.",
                f"Book a new session whenever you like: {catalogue_url()}",
                f"Previous session link (no longer active): {link}",
            ]
        return f"Session cancelled: {patient} on {when}", [
            f"{patient} cancelled the session on {when}.",
            "The slot is available again in your calendar.",
            f"Session room (no longer active): {link}",
        ]

    if event == EVENT_REMINDER:
        other = practitioner if is_patient else patient
        return "Your session starts in about 30 minutes", [
            f"Reminder: your session with {other} starts at {b.slot_time.strftime('%H:%M')} today ({b.slot_date.isoformat()}).",
            f"Join here: {link}",
        ]

    if event in FOLLOWUP_EVENTS:
        days = _followup_days(event)
        return f"How are you doing? It has been {days} days", [
            f"It has been {days} days since your last session with {practitioner}.",
            "Keeping a steady rhythm helps the work you started keep going.",
            f"Book your next session: {catalogue_url()}",
            f"Your session room with {practitioner}: {link}",
        ]

    raise ValueError(f"Unknown notification event: {event}")


def _calendar_for(event: str, b: BookingSnapshot, parties: BookingParties, role: str) -> CalendarAttachment | None:
    action = _CALENDAR_ACTIONS.get(event)
    if action is None:
        return None
    other = parties.practitioner.name if role == ROLE_PATIENT else parties.patient.name
    summary = f"Session with {other}" if other else f"Session - {BRAND}"
    if action == ACTION_CANCEL:
        summary = f"Cancelled: {summary}"
    content = build_invite(
        action,
        booking_id=b.id,
        patient_id=b.patient_id,
        practitioner_id=b.practitioner_id,
        slot_date=b.slot_date,
        slot_time=b.slot_time,
        summary=summary,
        description=f"{BRAND} session. Join: {absolute_url(b.session_link)}",
        sequence=b.calendar_sequence,
        location=absolute_url(b.session_link),
    )
    return CalendarAttachment(method=method_for(action), content=content)


def render(event: str, role: str, booking: BookingSnapshot, parties: BookingParties) -> Message:
    subject, lines = _lines(event, role, booking, parties)
    text = "\n\n".join(lines)
    html = "".join(f"<p>{escape(line)}</p>" for line in lines)
    return Message(
        subject=f"{BRAND}: {subject}",
        text=text,
        html=f"<div style='font-family:sans-serif'>{html}</div>",
        calendar=_calendar_for(event, booking, parties, role),
    )
