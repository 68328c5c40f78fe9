"""
Email channel. Resend (HTTP API) when RESEND_API_KEY is set, otherwise SMTP.

Both attach the calendar invite as text/calendar with the matching METHOD parameter so
mail clients offer "add"/"update"/"remove" from calendar.
"""
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import resend

from app.config import Settings
from app.services.notifications.types import ChannelOutcome, Contact, Message

logger = logging.getLogger(__name__)

DEFAULT_SENDER_NAME = "Psicologos en Red"


def _from_address(settings: Settings) -> str:
    if (settings.notify_from or "").strip():
        return settings.notify_from.strip()
    user = (settings.smtp_user or "").strip()
    if user:
        return f"{DEFAULT_SENDER_NAME} <{user}>"
    return f"{DEFAULT_SENDER_NAME} <noreply@localhost>"


def _bcc(settings: Settings) -> list[str]:
    return [a.strip() for a in (settings.notify_bcc or "").split(",") if a.strip()]


class ResendEmailChannel:
    channel_id = "email"

    def __init__(self, api_key: str, from_address: str, bcc: list[str] | None = None):
        self._api_key = api_key
        self._from = from_address
        self._bcc = bcc or []

    def send(self, recipient: Contact, message: Message) -> ChannelOutcome:
        to_email = (recipient.email or "").strip()
        if not to_email:
            return ChannelOutcome.SKIPPED
        resend.api_key = self._api_key
        params = {
            "from": self._from,
            "to": [to_email],
            "subject": message.subject,
            "text": message.text,
        }
        if message.html:
            params["html"] = message.html
        if self._bcc:
            params["bcc"] = self._bcc
        if message.calendar:
            params["attachments"] = [
                {
                    "filename": message.calendar.filename,
                    "content": list(message.calendar.content.encode("utf-8")),
                    "content_type": f"text/calendar; method={message.calendar.method}",
                }
            ]
        response = resend.Emails.send(params)
        logger.info("Email sent via Resend to %s: %s", to_email, response)
        return ChannelOutcome.SENT


class SmtpEmailChannel:
    channel_id = "email"

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        from_address: str,
        bcc: list[str] | None = None,
    ):
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._from = from_address
        self._bcc = bcc or []

    def build_mime(self, to_email: str, message: Message) -> MIMEMultipart:
        msg = MIMEMultipart("mixed")
        msg["Subject"] = message.subject
        msg["From"] = self._from
        msg["To"] = to_email
        body = MIMEMultipart("alternative")
        body.attach(MIMEText(message.text, "plain", "utf-8"))
        if message.html:
            body.attach(MIMEText(message.html, "html", "utf-8"))
        msg.attach(body)
        if message.calendar:
            part = MIMEText(message.calendar.content, "calendar", "utf-8")
            part.set_param("method", message.calendar.method)
            part.add_header("Content-Disposition", "attachment", filename=message.calendar.filename)
            msg.attach(part)
        return msg

    def send(self, recipient: Contact, message: Message) -> ChannelOutcome:
        to_email = (recipient.email or "").strip()
        if not to_email:
            return ChannelOutcome.SKIPPED
        if not self._user or not self._password:
            logger.debug("SMTP_USER or SMTP_PASSWORD not set; skipping email to %s", to_email)
            return ChannelOutcome.SKIPPED
        msg = self.build_mime(to_email, message)
        if self._port == 465:
            server = smtplib.SMTP_SSL(self._host, self._port, timeout=10)
        else:
            server = smtplib.SMTP(self._host, self._port, timeout=10)
        with server:
            if self._port != 465:
                server.starttls()
            server.login(self._user, self._password)
            server.sendmail(self._user, [to_email] + self._bcc, msg.as_string())
        logger.info("Email sent via SMTP to %s (%s)", to_email, message.subject)
        return ChannelOutcome.SENT


def build_email_channel(settings: Settings) -> ResendEmailChannel | SmtpEmailChannel:
    """Resend when an API key is configured, SMTP otherwise. Callers only see NotificationChannel."""
    from_address = _from_address(settings)
    bcc = _bcc(settings)
    if settings.resend_api_key:
        return ResendEmailChannel(settings.resend_api_key, from_address, bcc=bcc)
    return SmtpEmailChannel(
        settings.smtp_host,
        settings.smtp_port,
        settings.smtp_user,
        settings.smtp_password,
        from_address,
        bcc=bcc,
    )
