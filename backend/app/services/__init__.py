from app.services.booking_service import (
    cancel_booking,
    confirm_booking,
    create_booking,
    create_paid_booking,
    get_booking_note,
    register_join,
    reschedule_booking,
    update_booking_note,
)

__all__ = [
    "cancel_booking",
    "confirm_booking",
    "create_booking",
    "create_paid_booking",
    "get_booking_note",
    "register_join",
    "reschedule_booking",
    "update_booking_note",
]
