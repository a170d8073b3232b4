"""
Gmail SMTP sender for a single message.
Uses an App Password; one attempt per call, no retries.
"""

import logging
import smtplib
from dataclasses import dataclass
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid
from typing import Callable, Optional, Sequence

from outreach.accounts import Account
from outreach.attachments import Attachment
from outreach.errors import AuthenticationError, TransportError
from outreach.settings import SenderSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SendResult:
    message_id: str


def parse_cc(raw: Optional[str]) -> list[str]:
    """Split a comma-separated --cc value into addresses."""
    if not raw:
        return []
    return [addr.strip() for addr in raw.split(",") if addr.strip()]


class GmailSender:
    def __init__(
        self,
        account: Account,
        settings: Optional[SenderSettings] = None,
        smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP_SSL,
    ):
        self.account = account
        self.settings = settings or SenderSettings()
        self.smtp_factory = smtp_factory

    def build_message(
        self,
        to: str,
        subject: str,
        body: str,
        cc: Sequence[str] = (),
        attachments: Sequence[Attachment] = (),
    ) -> MIMEMultipart:
        msg = MIMEMultipart()
        msg["From"] = self.account.formatted_address
        msg["To"] = to
        if cc:
            msg["Cc"] = ", ".join(cc)
        msg["Subject"] = subject
        msg["Date"] = formatdate(localtime=True)
        domain = self.account.address.rpartition("@")[2] or None
        msg["Message-ID"] = make_msgid(domain=domain)

        msg.attach(MIMEText(body, "plain", "utf-8"))
        for att in attachments:
            part = MIMEApplication(att.path.read_bytes(), Name=att.filename)
            part["Content-Disposition"] = f'attachment; filename="{att.filename}"'
            msg.attach(part)
        return msg

    def send(
        self,
        to: str,
        subject: str,
        body: str,
        cc: Sequence[str] = (),
        attachments: Sequence[Attachment] = (),
    ) -> SendResult:
        """
        Send one email. Returns the Message-ID on success.

        Raises AuthenticationError when Gmail rejects the credentials and
        TransportError for any other failure.
        """
        try:
            msg = self.build_message(to, subject, body, cc, attachments)
        except OSError as exc:
            raise TransportError(f"Could not read attachment: {exc}") from exc

        recipients = [to, *cc]
        host, port = self.settings.smtp_host, self.settings.smtp_port
        try:
            with self.smtp_factory(host, port) as server:
                server.login(self.account.address, self.account.password)
                server.sendmail(self.account.address, recipients, msg.as_string())
        except smtplib.SMTPAuthenticationError as exc:
            logger.error("Gmail auth failed for %s", self.account.address)
            raise AuthenticationError(_smtp_error_text(exc)) from exc
        except smtplib.SMTPRecipientsRefused as exc:
            logger.warning("Recipient refused: %s", ", ".join(exc.recipients))
            raise TransportError(f"Recipient refused: {', '.join(exc.recipients)}") from exc
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send to %s: %s", to, exc)
            raise TransportError(str(exc) or exc.__class__.__name__) from exc

        logger.info("Sent email to %s via %s:%s", to, host, port)
        return SendResult(message_id=msg["Message-ID"])


def _smtp_error_text(exc: smtplib.SMTPResponseException) -> str:
    error = exc.smtp_error
    if isinstance(error, bytes):
        error = error.decode("utf-8", "replace")
    return f"{exc.smtp_code} {error}".strip()
