"""
Fan a booking event out to every (recipient x channel).

deliver() is synchronous and isolates failures: one channel raising never stops the
others, and every outcome lands in the DispatchReport. dispatch() hands deliver() to a
thread pool so request handlers never wait on SMTP/HTTP.
"""
import logging
from concurrent.futures import Future, ThreadPoolExecutor

from app.config import Settings
from app.core.constants import ALL_EVENTS, FOLLOWUP_EVENTS
from app.services.notifications.base import NotificationChannel
from app.services.notifications.email_channel import build_email_channel
from app.services.notifications.templates import render
from app.services.notifications.types import (
    ROLE_PATIENT,
    ROLE_PRACTITIONER,
    BookingParties,
    BookingSnapshot,
    ChannelOutcome,
    DeliveryResult,
    DispatchReport,
    Recipient,
)
from app.services.notifications.whatsapp_channel import build_whatsapp_channel

logger = logging.getLogger(__name__)


def recipients_for(event: str, parties: BookingParties) -> list[Recipient]:
    """Follow-ups go to the patient only; everything else to both parties."""
    recipients = [Recipient(ROLE_PATIENT, parties.patient)]
    if event not in FOLLOWUP_EVENTS:
        recipients.append(Recipient(ROLE_PRACTITIONER, parties.practitioner))
    return recipients


class NotificationDispatcher:
    def __init__(self, channels: list[NotificationChannel], max_workers: int = 4):
        self.channels = list(channels)
        self._max_workers = max(1, max_workers)
        self._executor: ThreadPoolExecutor | None = None

    def _pool(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="notify")
        return self._executor

    def deliver(self, event: str, booking: BookingSnapshot, parties: BookingParties) -> DispatchReport:
        if event not in ALL_EVENTS:
            raise ValueError(f"Unknown notification event: {event}")
        report = DispatchReport(event=event, booking_id=booking.id)
        for recipient in recipients_for(event, parties):
            message = render(event, recipient.role, booking, parties)
            for channel in self.channels:
                try:
                    outcome = channel.send(recipient.contact, message)
                    report.results.append(DeliveryResult(recipient.role, channel.channel_id, outcome))
                except Exception as e:
                    logger.warning(
                        "Notify %s booking=%s: %s to %s failed: %s",
                        event, booking.id, channel.channel_id, recipient.role, e,
                    )
                    report.results.append(
                        DeliveryResult(recipient.role, channel.channel_id, ChannelOutcome.FAILED, error=str(e))
                    )
        logger.info(
            "Notify %s booking=%s: sent=%s failed=%s skipped=%s",
            event, booking.id, report.sent, report.failed,
            len(report.results) - report.sent - report.failed,
        )
        return report

    def _deliver_logged(self, event: str, booking: BookingSnapshot, parties: BookingParties) -> DispatchReport | None:
        try:
            return self.deliver(event, booking, parties)
        except Exception as e:
            logger.exception("Notify %s booking=%s crashed: %s", event, booking.id, e)
            return None

    def dispatch(self, event: str, booking: BookingSnapshot, parties: BookingParties) -> Future | None:
        """Fire-and-forget. Returns the Future (tests may wait on it) or None if it could not be queued."""
        try:
            return self._pool().submit(self._deliver_logged, event, booking, parties)
        except RuntimeError as e:
            # Pool already shut down (process exiting)
            logger.warning("Notify %s booking=%s not queued: %s", event, booking.id, e)
            return None

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None


def build_dispatcher(settings: Settings) -> NotificationDispatcher:
    channels: list[NotificationChannel] = [build_email_channel(settings)]
    whatsapp = build_whatsapp_channel(settings)
    if whatsapp is not None:
        channels.append(whatsapp)
    logger.info("Notification channels: %s", ", ".join(type(c).__name__ for c in channels))
    return NotificationDispatcher(channels, max_workers=settings.notify_max_workers)
