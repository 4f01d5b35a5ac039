from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging
import smtplib
import threading
from email.message import EmailMessage

from email_validator import validate_email, EmailNotValidError

logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SECONDS = 10


@dataclass
class MailPayload:
    event_type: str
    subject: str
    body_html: str
    body_text: str
    recipient_email: str


def normalize_email_address(addr: str) -> str | None:
    if not addr:
        return None
    try:
        return validate_email(addr, check_deliverability=False).normalized
    except EmailNotValidError:
        return None


class Mailer(ABC):
    @abstractmethod
    def send(self, payload: MailPayload) -> None:
        """Hand a message off for delivery. Must not raise on delivery problems."""


class SmtpMailer(Mailer):
    """Sends each message from a short-lived daemon thread so requests never wait on SMTP."""

    def __init__(self, host: str, port: int, sender: str, sender_name: str = "Ticket Desk"):
        self.host = host
        self.port = port
        self.sender = sender
        self.sender_name = sender_name

    def is_ready(self) -> bool:
        return bool(self.host and self.sender)

    def _build_message(self, payload: MailPayload) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = payload.subject
        msg["From"] = f"{self.sender_name} <{self.sender}>"
        msg["To"] = payload.recipient_email
        msg.set_content(payload.body_text)
        msg.add_alternative(payload.body_html, subtype="html")
        return msg

    def _deliver(self, payload: MailPayload) -> None:
        try:
            msg = self._build_message(payload)
            with smtplib.SMTP(self.host, self.port, timeout=SMTP_TIMEOUT_SECONDS) as smtp:
                smtp.send_message(msg)
            logger.info("mail sent: %s -> %s", payload.event_type, payload.recipient_email)
        except (smtplib.SMTPException, OSError):
            logger.exception("mail delivery failed: %s", payload.event_type)

    def send(self, payload: MailPayload) -> None:
        if not self.is_ready():
            logger.info("SMTP not configured, skipping mail: %s", payload.event_type)
            return
        normalized = normalize_email_address(payload.recipient_email)
        if not normalized:
            logger.info("invalid recipient address, skipping mail: %s", payload.event_type)
            return
        payload.recipient_email = normalized
        t = threading.Thread(target=self._deliver, args=(payload,), name="mail-sender", daemon=True)
        t.start()


class OutboxMailer(Mailer):
    """Keeps messages in memory. Used by tests and local runs without SMTP."""

    def __init__(self):
        self.sent: list[MailPayload] = []

    def send(self, payload: MailPayload) -> None:
        logger.info("mail queued in outbox: %s -> %s", payload.event_type, payload.recipient_email)
        self.sent.append(payload)
