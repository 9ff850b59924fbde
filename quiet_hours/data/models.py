"""
Quiet Hours Scheduler — Data Models.

Quiet blocks persist in SQLite; the reminder sweeper and the owner-facing
API both read and mutate them through the store in quiet_hours.data.db.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


@dataclass
class QuietBlock:
    """A user's reserved focus interval.

    start/end are timezone-aware instants; [start, end) is half-open.
    """

    id: str
    owner_id: str
    title: str
    start: datetime
    end: datetime
    active: bool = field(default=True)
    reminder_sent: bool = False
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Profile:
    """Contact details of a block owner."""

    id: str
    email: str
    full_name: str | None = None
    created_at: str = ""
    updated_at: str = ""


class BlockStatus(str, Enum):
    """Where a block sits relative to "now". Derived, never stored."""

    UPCOMING = "upcoming"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
