"""
Quiet Hours Scheduler — Overlap Guard.

Validates a proposed quiet block and decides whether it may be admitted
next to the owner's existing active blocks.

No I/O: callers supply the snapshot of existing blocks and do the insert.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable

from quiet_hours.data.models import QuietBlock

logger = logging.getLogger(__name__)


class RejectionReason(str, Enum):
    EMPTY_TITLE = "EmptyTitle"
    INVALID_RANGE = "InvalidRange"
    OVERLAP = "Overlap"


class ValidationError(Exception):
    """Raised when a block request is rejected before persistence."""

    def __init__(self, reason: RejectionReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason


class OverlapError(ValidationError):
    """Raised when a block request overlaps an existing active block."""

    def __init__(self, conflicting: list[QuietBlock]) -> None:
        super().__init__(
            RejectionReason.OVERLAP,
            "This time slot overlaps with an existing quiet block.",
        )
        self.conflicting = conflicting


@dataclass
class AdmissionResult:
    """Outcome of an admission check."""

    accepted: bool
    reason: RejectionReason | None = None
    conflicting_blocks: list[QuietBlock] = field(default_factory=list)


def validate_block_request(title: str, start: datetime, end: datetime) -> None:
    """Reject an empty title or a non-positive / zone-less time range."""
    if not title or not title.strip():
        raise ValidationError(RejectionReason.EMPTY_TITLE, "Title is required")
    if start.tzinfo is None or end.tzinfo is None:
        raise ValidationError(
            RejectionReason.INVALID_RANGE, "Start and end must carry a UTC offset",
        )
    if end <= start:
        raise ValidationError(
            RejectionReason.INVALID_RANGE, "End time must be after start time",
        )


def intervals_overlap(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime,
) -> bool:
    """Half-open [start, end) intersection; touching endpoints don't overlap."""
    return a_start < b_end and a_end > b_start


def admit(
    owner_id: str,
    start: datetime,
    end: datetime,
    existing_active_blocks: Iterable[QuietBlock],
) -> AdmissionResult:
    """Decide whether [start, end) may be added for owner_id.

    Only active blocks of the same owner are considered.
    """
    conflicting = [
        b for b in existing_active_blocks
        if b.owner_id == owner_id
        and b.active
        and intervals_overlap(start, end, b.start, b.end)
    ]
    if conflicting:
        logger.info(
            "Rejected block %s to %s for owner %s: overlaps %d block(s)",
            start.isoformat(), end.isoformat(), owner_id, len(conflicting),
        )
        return AdmissionResult(
            accepted=False,
            reason=RejectionReason.OVERLAP,
            conflicting_blocks=conflicting,
        )
    return AdmissionResult(accepted=True)
