"""Mail delivery collaborator.

``MailSender.send`` delivers one HTML message and raises
``MailDeliveryError`` on failure. Call sites decide whether a failure aborts
their operation (OTP issue, reset link) or is only logged (welcome and
password-updated notices, see ``send_best_effort``).
"""

import logging
import smtplib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional

import config
from core.exceptions import MailDeliveryError

logger = logging.getLogger(__name__)


@dataclass
class DeliveryResult:
    to_address: str
    subject: str
    message_id: Optional[str] = None


class MailSender(ABC):
    """Base class for mail backends."""

    @abstractmethod
    def send(self, to_address: str, subject: str, html_body: str) -> DeliveryResult:
        """Deliver one message.

        Args:
            to_address: Recipient email address.
            subject: Mail subject.
            html_body: Rendered HTML body.

        Returns:
            DeliveryResult describing the accepted message.

        Raises:
            MailDeliveryError: If the message could not be delivered.
        """

    def send_best_effort(
        self, to_address: str, subject: str, html_body: str
    ) -> Optional[DeliveryResult]:
        """Deliver a notification whose failure must not undo the caller's work."""
        try:
            return self.send(to_address, subject, html_body)
        except MailDeliveryError:
            logger.warning("Notification '%s' to %s was not delivered", subject, to_address)
            return None


class ConsoleMailSender(MailSender):
    """Development backend that only logs outgoing mail."""

    def send(self, to_address: str, subject: str, html_body: str) -> DeliveryResult:
        logger.info("Mail to %s: %s (%d bytes)", to_address, subject, len(html_body))
        return DeliveryResult(to_address=to_address, subject=subject)


class SmtpMailSender(MailSender):
    """SMTP backend."""

    def __init__(
        self,
        host: str = config.SMTP_HOST,
        port: int = config.SMTP_PORT,
        username: str = config.SMTP_USER,
        password: str = config.SMTP_PASSWORD,
        use_tls: bool = config.SMTP_USE_TLS,
        sender: str = config.MAIL_FROM,
        timeout: float = config.SMTP_TIMEOUT_SECONDS,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender = sender
        self.timeout = timeout

    def send(self, to_address: str, subject: str, html_body: str) -> DeliveryResult:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to_address
        message["Subject"] = subject
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(html_body, subtype="html")

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("SMTP delivery to %s failed: %s", to_address, e)
            raise MailDeliveryError() from e

        logger.info("Mail sent to %s: %s", to_address, subject)
        return DeliveryResult(
            to_address=to_address, subject=subject, message_id=message.get("Message-ID")
        )


def build_mail_sender(backend: str = config.MAIL_BACKEND) -> MailSender:
    """Build the configured mail backend."""
    if backend == "smtp":
        return SmtpMailSender()
    return ConsoleMailSender()
