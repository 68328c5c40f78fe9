"""
iCalendar (.ics) invites attached to booking emails.

create/update publish the event (METHOD:PUBLISH); cancel sends METHOD:CANCEL with
STATUS:CANCELLED. The UID is stable per booking so calendar clients replace the earlier
event; SEQUENCE grows with every change. Times are floating local (no TZID), one hour long.
"""
from datetime import date, datetime, time, timedelta, timezone

from app.config import settings
from app.core.constants import SLOT_MINUTES

ACTION_CREATE = "create"
ACTION_UPDATE = "update"
ACTION_CANCEL = "cancel"
ACTIONS = (ACTION_CREATE, ACTION_UPDATE, ACTION_CANCEL)

PRODID = "-//Psicologos en Red//Booking//ES"
MAX_LINE_OCTETS = 75


def escape_text(value: str) -> str:
    """Escape a TEXT property value: backslash, semicolon, comma and line breaks."""
    return (
        (value or "")
        .replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
        .replace("\r", "\\n")
    )


def fold_line(line: str) -> str:
    """Fold a content line at 75 octets; continuation lines start with a single space.
    Never splits a multi-byte UTF-8 character."""
    if len(line.encode("utf-8")) <= MAX_LINE_OCTETS:
        return line
    parts = []
    current = ""
    current_len = 0
    limit = MAX_LINE_OCTETS
    for ch in line:
        size = len(ch.encode("utf-8"))
        if current_len + size > limit:
            parts.append(current)
            current = ""
            current_len = 0
            limit = MAX_LINE_OCTETS - 1  # room for the leading space
        current += ch
        current_len += size
    parts.append(current)
    return "\r\n ".join(parts)


def event_uid(
    booking_id: int | None,
    patient_id: int,
    practitioner_id: int,
    slot_date: date,
    slot_time: time,
    domain: str | None = None,
) -> str:
    domain = domain or settings.calendar_domain
    if booking_id is not None:
        return f"booking-{booking_id}@{domain}"
    return f"booking-{patient_id}-{practitioner_id}-{slot_date.strftime('%Y%m%d')}-{slot_time.strftime('%H%M')}@{domain}"


def _fmt_local(dt: datetime) -> str:
    return dt.strftime("%Y%m%dT%H%M%S")


def build_invite(
    action: str,
    *,
    booking_id: int | None,
    patient_id: int,
    practitioner_id: int,
    slot_date: date,
    slot_time: time,
    summary: str,
    description: str = "",
    sequence: int = 0,
    location: str | None = None,
    stamp: datetime | None = None,
) -> str:
    """Return the .ics body (CRLF line endings, folded) for one booking."""
    if action not in ACTIONS:
        raise ValueError(f"Unknown calendar action: {action}")
    start = datetime.combine(slot_date, slot_time)
    end = start + timedelta(minutes=SLOT_MINUTES)
    stamp = stamp or datetime.now(timezone.utc)
    method = method_for(action)

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "CALSCALE:GREGORIAN",
        f"METHOD:{method}",
        "BEGIN:VEVENT",
        f"UID:{event_uid(booking_id, patient_id, practitioner_id, slot_date, slot_time)}",
        f"SEQUENCE:{max(0, int(sequence))}",
        f"DTSTAMP:{stamp.strftime('%Y%m%dT%H%M%SZ')}",
        f"DTSTART:{_fmt_local(start)}",
        f"DTEND:{_fmt_local(end)}",
        f"SUMMARY:{escape_text(summary)}",
    ]
    if description:
        lines.append(f"DESCRIPTION:{escape_text(description)}")
    if location:
        lines.append(f"LOCATION:{escape_text(location)}")
    lines.append("STATUS:CANCELLED" if action == ACTION_CANCEL else "STATUS:CONFIRMED")
    lines += ["END:VEVENT", "END:VCALENDAR"]
    return "\r\n".join(fold_line(line) for line in lines) + "\r\n"


def method_for(action: str) -> str:
    return "CANCEL" if action == ACTION_CANCEL else "PUBLISH"
