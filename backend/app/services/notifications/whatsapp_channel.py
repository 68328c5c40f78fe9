"""WhatsApp messages via the Twilio Messages REST API (httpx)."""
import logging

import httpx

from app.config import Settings
from app.services.notifications.phone import normalize_phone
from app.services.notifications.types import ChannelOutcome, Contact, Message

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"
REQUEST_TIMEOUT_SECONDS = 10


class WhatsAppChannel:
    channel_id = "whatsapp"

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        default_country_code: str = "52",
        client: httpx.Client | None = None,
    ):
        self._sid = account_sid
        self._token = auth_token
        self._from = from_number
        self._country_code = default_country_code
        self._client = client

    def _sender(self) -> str:
        sender = self._from.strip()
        if sender.startswith("whatsapp:"):
            return sender
        return f"whatsapp:{normalize_phone(sender, self._country_code) or sender}"

    def send(self, recipient: Contact, message: Message) -> ChannelOutcome:
        to_number = normalize_phone(recipient.phone, self._country_code)
        if not to_number:
            if recipient.phone:
                logger.debug("WhatsApp: unusable phone %r; skipping", recipient.phone)
            return ChannelOutcome.SKIPPED
        data = {
            "From": self._sender(),
            "To": f"whatsapp:{to_number}",
            "Body": f"{message.subject}\n\n{message.text}",
        }
        url = TWILIO_MESSAGES_URL.format(sid=self._sid)
        if self._client is not None:
            response = self._client.post(url, auth=(self._sid, self._token), data=data)
        else:
            with httpx.Client(timeout=REQUEST_TIMEOUT_SECONDS) as client:
                response = client.post(url, auth=(self._sid, self._token), data=data)
        response.raise_for_status()
        logger.info("WhatsApp sent to %s (status %s)", to_number, response.status_code)
        return ChannelOutcome.SENT


def build_whatsapp_channel(settings: Settings) -> WhatsAppChannel | None:
    """None unless Twilio credentials and a sender number are configured."""
    if not (settings.twilio_account_sid and settings.twilio_auth_token and settings.whatsapp_from):
        return None
    return WhatsAppChannel(
        settings.twilio_account_sid,
        settings.twilio_auth_token,
        settings.whatsapp_from,
        default_country_code=settings.default_country_code,
    )
