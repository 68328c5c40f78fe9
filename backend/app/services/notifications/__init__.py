from app.services.notifications.dispatcher import NotificationDispatcher, build_dispatcher, recipients_for
from app.services.notifications.types import (
    BookingParties,
    BookingSnapshot,
    ChannelOutcome,
    Contact,
    DispatchReport,
    Message,
)

__all__ = [
    "BookingParties",
    "BookingSnapshot",
    "ChannelOutcome",
    "Contact",
    "DispatchReport",
    "Message",
    "NotificationDispatcher",
    "build_dispatcher",
    "recipients_for",
]
