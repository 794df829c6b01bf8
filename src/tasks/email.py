"""Celery task delivering account emails over SMTP."""

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr

from src.celery_app import app as celery_app
from src.config import get_settings

logger = logging.getLogger(__name__)


@celery_app.task(autoretry_for=(smtplib.SMTPException, OSError), max_retries=3, retry_backoff=True)
def send_email(to_name: str, to_email: str, subject: str, body: str) -> bool:
    """Send a plain-text email.

    Returns:
        True if the message was handed to the SMTP server, False when SMTP is disabled.
    """
    settings = get_settings()
    if not settings.smtp_enabled:
        logger.info(f"SMTP disabled, dropping '{subject}' email for {to_email}")
        return False

    message = EmailMessage()
    message["From"] = formataddr(("Thunderdome", settings.smtp_sender))
    message["To"] = formataddr((to_name, to_email))
    message["Subject"] = subject
    message.set_content(body)

    with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as conn:
        if settings.smtp_secure:
            conn.starttls()
        if settings.smtp_user:
            conn.login(settings.smtp_user, settings.smtp_pass or "")
        conn.send_message(message)

    logger.info(f"Sent '{subject}' email to {to_email}")
    return True
