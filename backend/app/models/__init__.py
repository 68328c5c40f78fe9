from app.models.booking import Booking
from app.models.followup_state import FollowupState
from app.models.job_lease import JobLease
from app.models.patient import Patient
from app.models.practitioner import AvailabilityWindow, BlackoutRange, Practitioner

__all__ = [
    "AvailabilityWindow",
    "BlackoutRange",
    "Booking",
    "FollowupState",
    "JobLease",
    "Patient",
    "Practitioner",
]
