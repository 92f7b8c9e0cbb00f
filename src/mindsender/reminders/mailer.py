# src/mindsender/reminders/mailer.py

from __future__ import annotations

import logging
from email.message import EmailMessage
from email.utils import formataddr

import aiosmtplib

from ..config import Settings
from ..core.ports import MailTransport, OutgoingEmail

logger = logging.getLogger(__name__)


def build_message(email: OutgoingEmail) -> EmailMessage:
    """multipart/alternative: plain text first, HTML as the preferred part."""
    msg = EmailMessage()
    msg["From"] = formataddr((email.from_name, email.from_address))
    msg["To"] = email.to_address
    msg["Subject"] = email.subject
    msg.set_content(email.text)
    msg.add_alternative(email.html, subtype="html")
    return msg


class SmtpMailTransport:
    """
    SMTP delivery through aiosmtplib.

    One connection per message; the reminder job sends sequentially with a
    delay anyway, so connection reuse buys nothing. `timeout` bounds every
    SMTP step so a hung server cannot block the whole cycle forever.
    """

    def __init__(
        self,
        *,
        host: str,
        port: int,
        username: str | None,
        password: str | None,
        start_tls: bool = True,
        timeout: float = 30.0,
    ) -> None:
        self._host = host
        self._port = int(port)
        self._username = username
        self._password = password
        self._start_tls = start_tls
        self._timeout = float(timeout)

    async def send(self, email: OutgoingEmail) -> None:
        message = build_message(email)
        await aiosmtplib.send(
            message,
            hostname=self._host,
            port=self._port,
            username=self._username,
            password=self._password,
            start_tls=self._start_tls,
            timeout=self._timeout,
        )
        logger.debug("SMTP accepted message to=%s subject=%r", email.to_address, email.subject)


class ConsoleMailTransport:
    """Dry-run transport: logs the message instead of sending it."""

    def __init__(self) -> None:
        self.sent: list[OutgoingEmail] = []

    async def send(self, email: OutgoingEmail) -> None:
        self.sent.append(email)
        logger.info("CONSOLE MAIL to=%s subject=%r\n%s", email.to_address, email.subject, email.text)


def build_mail_transport(settings: Settings) -> MailTransport:
    """Pick the transport named by settings.mail_backend (smtp | console)."""
    settings.require_mail()
    if settings.mail_backend == "console":
        logger.info("Mail backend: console (dry-run)")
        return ConsoleMailTransport()

    logger.info("Mail backend: smtp host=%s port=%s", settings.smtp_host, settings.smtp_port)
    return SmtpMailTransport(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_user,
        password=settings.smtp_password,
        start_tls=settings.smtp_starttls,
    )
