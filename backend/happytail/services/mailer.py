"""Outgoing email over SMTP."""

import smtplib
from email.message import EmailMessage
from urllib.parse import urlencode

import structlog

from happytail.config import get_settings

logger = structlog.get_logger()

INVITATION_SUBJECT = "Access to Happy Tail"


def smtp_configured() -> bool:
    settings = get_settings()
    return bool(settings.smtp_host and settings.mail_from)


def send_email(to: str, subject: str, content: str) -> None:
    """Send a plain-text email. Raises ``smtplib.SMTPException`` on failure."""
    settings = get_settings()
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = settings.mail_from
    msg["To"] = to
    msg.set_content(content)

    with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as s:
        if settings.smtp_tls:
            s.starttls()
        if settings.smtp_username and settings.smtp_password.get_secret_value():
            s.login(settings.smtp_username, settings.smtp_password.get_secret_value())
        s.send_message(msg)


def send_invitation_email(email: str, token: str) -> None:
    """Background job: mail an invitation link; failures are only logged."""
    settings = get_settings()
    query = urlencode({"inviteToken": token, "email": email})
    link = f"{settings.base_url}/register?{query}"
    try:
        send_email(email, INVITATION_SUBJECT, f"You have been invited to Happy Tail: {link}")
        logger.info("invitation_email_sent", email=email)
    except (smtplib.SMTPException, OSError) as e:
        logger.warning("invitation_email_failed", email=email, error=str(e))
