import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional, Sequence

from app.core.config import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Attachment:
    filename: str
    content: bytes
    maintype: str = "application"
    subtype: str = "pdf"


def build_message(
    to: str,
    subject: str,
    body: str,
    *,
    sender: str,
    attachments: Sequence[Attachment] = (),
) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = to
    msg.set_content(body)
    for att in attachments:
        msg.add_attachment(
            att.content,
            maintype=att.maintype,
            subtype=att.subtype,
            filename=att.filename,
        )
    return msg


def send_email(
    to: Optional[str],
    subject: str,
    body: str,
    *,
    attachments: Sequence[Attachment] = (),
) -> bool:
    """
    Send one email over SMTP. Returns False when nothing was sent
    (no recipient or SMTP not configured). SMTP errors propagate.
    """
    if not to:
        return False

    settings = get_settings()
    if not settings.smtp_configured:
        logger.info("SMTP not configured; email skipped", extra={"to": to, "subject": subject})
        return False

    msg = build_message(to, subject, body, sender=settings.mail_from, attachments=attachments)

    with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as s:
        if settings.smtp_tls:
            s.starttls()
        if settings.smtp_username and settings.smtp_password:
            s.login(settings.smtp_username, settings.smtp_password)
        s.send_message(msg)

    logger.info("Email sent", extra={"to": to, "subject": subject})
    return True
