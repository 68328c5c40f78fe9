"""Protocol for notification channels. Email and WhatsApp share the same contract."""
from typing import Protocol

from app.services.notifications.types import ChannelOutcome, Contact, Message


class NotificationChannel(Protocol):
    """A missing address for this channel is SKIPPED, never an error. Transport errors may raise;
    the dispatcher records them as FAILED."""

    @property
    def channel_id(self) -> str:
        """Short id ('email', 'whatsapp') used in logs and DispatchReport."""
        ...

    def send(self, recipient: Contact, message: Message) -> ChannelOutcome:
        ...
