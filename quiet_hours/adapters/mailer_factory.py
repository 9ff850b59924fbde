"""Mailer factory — creates the right email adapter based on config."""

from __future__ import annotations

from quiet_hours.config import settings
from quiet_hours.ports.email_port import EmailPort


def create_mailer() -> EmailPort:
    """Return the email adapter matching the EMAIL_BACKEND setting."""
    backend = settings.EMAIL_BACKEND.lower()

    if backend == "smtp":
        from quiet_hours.adapters.smtp_mailer import SmtpMailer

        return SmtpMailer(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            from_address=settings.sender_address,
            from_name=settings.EMAIL_FROM_NAME,
            security=settings.SMTP_SECURITY,
        )

    if backend == "console":
        from quiet_hours.adapters.console_mailer import ConsoleMailer

        return ConsoleMailer()

    raise ValueError(f"Unknown EMAIL_BACKEND: {backend!r}")
