"""Profile port — resolves a block owner to a reminder recipient.

Core modules depend on this protocol, never on a specific profile store.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class ContactResolutionError(Exception):
    """Raised when the owner's profile cannot be found or read."""


class MissingEmailError(ContactResolutionError):
    """Raised when the owner's profile has no email address."""


@dataclass
class Contact:
    """Where and to whom a reminder is sent."""

    email: str
    display_name: str


class ProfilePort(Protocol):
    """Abstract contact lookup used by the reminder sweeper."""

    def resolve_contact(self, owner_id: str) -> Contact: ...
