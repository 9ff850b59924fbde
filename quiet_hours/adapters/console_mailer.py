"""Console email adapter — implements EmailPort for development.

Logs the rendered reminder instead of sending it.
"""

from __future__ import annotations

import logging

from quiet_hours.ports.email_port import ReminderEmail

logger = logging.getLogger(__name__)


class ConsoleMailer:
    """Logging implementation of EmailPort. Always succeeds."""

    def __init__(self) -> None:
        self.outbox: list[ReminderEmail] = []

    async def deliver(self, message: ReminderEmail) -> None:
        self.outbox.append(message)
        logger.info("[console mail] to=%s subject=%s\n%s", message.to, message.subject, message.text)
