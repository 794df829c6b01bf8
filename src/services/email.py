"""Account notification emails."""

import logging

from kombu.exceptions import OperationalError

from src.config import Settings, get_settings
from src.tasks.email import send_email

logger = logging.getLogger(__name__)


class EmailService:
    """Renders account emails and queues them for delivery."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()

    def _link(self, path: str) -> str:
        return f"{self.settings.app_url.rstrip('/')}{self.settings.path_prefix}{path}"

    def _queue(self, name: str, email: str, subject: str, body: str) -> None:
        # Callers have already committed; queueing failures are logged, not raised
        try:
            send_email.delay(name, email, subject, body)
        except (OperationalError, OSError) as e:
            logger.error(f"Failed to queue '{subject}' email for {email}: {e}")
            return
        logger.info(f"Queued '{subject}' email for {email}")

    def send_welcome(self, name: str, email: str, verify_id: str) -> None:
        """Welcome a newly registered user and ask them to verify their email."""
        link = self._link(f"/verify-account/{verify_id}")
        body = (
            f"Hi {name},\n\n"
            "Welcome to Thunderdome! Please verify your account email by visiting:\n\n"
            f"{link}\n\n"
            "If you did not create this account you can ignore this email.\n"
        )
        self._queue(name, email, "Welcome to Thunderdome!", body)

    def send_forgot_password(self, name: str, email: str, reset_id: str) -> None:
        """Send the link that lets a user choose a new password."""
        link = self._link(f"/reset-password/{reset_id}")
        body = (
            f"Hi {name},\n\n"
            "It seems you've forgotten your Thunderdome password. "
            "Use the link below within the next hour to reset it:\n\n"
            f"{link}\n\n"
            "If you did not request a password reset you can ignore this email.\n"
        )
        self._queue(name, email, "Reset your Thunderdome password", body)

    def send_password_reset(self, name: str, email: str) -> None:
        """Confirm that a forgot-password reset was completed."""
        forgot_link = self._link("/forgot-password")
        body = (
            f"Hi {name},\n\n"
            "Your Thunderdome password was successfully reset.\n\n"
            f"If you did not do this, reset your password again at {forgot_link}\n"
        )
        self._queue(name, email, "Your Thunderdome password was reset", body)

    def send_password_update(self, name: str, email: str) -> None:
        """Confirm that a signed-in user changed their password."""
        body = (
            f"Hi {name},\n\n"
            "Your Thunderdome password was successfully updated.\n\n"
            f"If you did not do this, reset your password at {self._link('/forgot-password')}\n"
        )
        self._queue(name, email, "Your Thunderdome password was updated", body)
