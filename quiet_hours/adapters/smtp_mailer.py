"""SMTP email adapter — implements EmailPort.

Blocking smtplib calls run in a worker thread via asyncio.to_thread.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from quiet_hours.ports.email_port import DispatchError, ReminderEmail

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 30


class SmtpMailer:
    """SMTP implementation of EmailPort."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_address: str = "",
        from_name: str = "",
        security: str = "starttls",
    ) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._from_address = from_address or username
        self._from_name = from_name
        self._security = security

    def _build_mime(self, message: ReminderEmail) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = (
            f'"{self._from_name}" <{self._from_address}>' if self._from_name
            else self._from_address
        )
        msg["To"] = message.to
        msg.attach(MIMEText(message.text, "plain", "utf-8"))
        msg.attach(MIMEText(message.html, "html", "utf-8"))
        return msg

    def _smtp_send(self, message: ReminderEmail) -> None:
        """Blocking SMTP send — intended to be run via ``asyncio.to_thread``."""
        if not self._username or not self._password:
            raise DispatchError(
                "SMTP credentials not configured: set SMTP_USERNAME and SMTP_PASSWORD"
            )

        msg = self._build_mime(message)

        if self._security == "ssl":
            server = smtplib.SMTP_SSL(self._host, self._port, timeout=_TIMEOUT_SECONDS)
        else:
            server = smtplib.SMTP(self._host, self._port, timeout=_TIMEOUT_SECONDS)

        try:
            if self._security == "starttls":
                server.starttls()
            server.login(self._username, self._password)
            server.sendmail(self._from_address, [message.to], msg.as_string())
        finally:
            try:
                server.quit()
            except smtplib.SMTPException as exc:
                logger.debug("SMTP quit failed after send attempt: %s", exc)

        logger.info("Email sent to %s: %s", message.to, message.subject)

    async def deliver(self, message: ReminderEmail) -> None:
        try:
            await asyncio.to_thread(self._smtp_send, message)
        except DispatchError:
            raise
        except (smtplib.SMTPException, OSError) as exc:
            raise DispatchError(f"SMTP delivery to {message.to} failed: {exc}") from exc
