"""
Centralized constants for booking policy and the scheduler.

Change job IDs, lead times or reminder windows here instead of scattering literals across
services, routes and main.
"""

# Scheduler job IDs (also used as job_leases keys)
RECONCILIATION_JOB_ID = "booking_reconciliation"
REMINDER_JOB_ID = "booking_reminders"
FOLLOWUP_JOB_ID = "booking_followups"

# Slots are fixed one-hour units
SLOT_MINUTES = 60

# Booking statuses
STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
STATUS_MISSED = "missed"
OPEN_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED)

# Who created the booking
SOURCE_PATIENT = "patient"
SOURCE_PAYMENT = "payment"

# Parties that can join a live session
PARTY_PATIENT = "patient"
PARTY_PRACTITIONER = "practitioner"
PARTIES = (PARTY_PATIENT, PARTY_PRACTITIONER)

# Lead times (hours before start) for patient-initiated changes
CANCEL_LEAD_HOURS = 36
RESCHEDULE_LEAD_HOURS = 24

# Reminder: scan every 5 min, send to bookings starting 25-35 min from now.
# Window must be at least as wide as the scan interval; reminder_sent_at prevents repeats.
REMINDER_WINDOW_MIN_MINUTES = 25
REMINDER_WINDOW_MAX_MINUTES = 35

# Re-engagement milestones (days since the last completed session)
FOLLOWUP_MILESTONES = (15, 30, 60)

# Notification events
EVENT_CREATED = "created"
EVENT_RESCHEDULED = "rescheduled"
EVENT_CANCELLED = "cancelled"
EVENT_REMINDER = "reminder"


def followup_event(days: int) -> str:
    return f"followup-{days}"


FOLLOWUP_EVENTS = tuple(followup_event(d) for d in FOLLOWUP_MILESTONES)
ALL_EVENTS = (EVENT_CREATED, EVENT_RESCHEDULED, EVENT_CANCELLED, EVENT_REMINDER) + FOLLOWUP_EVENTS

# Slot availability reasons
REASON_PAST_DATE = "past date"
REASON_BLACKOUT = "blackout"
REASON_NON_WORKING_DAY = "non-working day"
REASON_OUTSIDE_WINDOW = "outside working hours"
REASON_ALREADY_BOOKED = "already booked"
REASON_IN_PAST = "in the past"
REASON_NOT_ON_THE_HOUR = "not on the hour"
