"""Email port — abstract interface for delivering reminder emails.

Core modules depend on this protocol, never on a specific transport.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class DispatchError(Exception):
    """Raised when the transport fails to deliver a message."""


@dataclass
class ReminderEmail:
    """A fully rendered message, ready for the transport."""

    to: str
    subject: str
    text: str
    html: str


class EmailPort(Protocol):
    """Abstract email transport used by the reminder sweeper.

    deliver() returning normally means the transport accepted the message.
    """

    async def deliver(self, message: ReminderEmail) -> None: ...
