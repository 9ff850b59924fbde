"""Request and response models for the HTTP API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from quiet_hours.data.models import BlockStatus, QuietBlock


class BlockCreate(BaseModel):
    """Body of POST /api/blocks. Times must carry a UTC offset."""

    title: str
    start: datetime
    end: datetime


class BlockOut(BaseModel):
    id: str
    title: str
    start: datetime
    end: datetime
    active: bool
    reminder_sent: bool
    status: BlockStatus
    created_at: str

    @classmethod
    def from_block(cls, block: QuietBlock, status: BlockStatus) -> BlockOut:
        return cls(
            id=block.id,
            title=block.title,
            start=block.start,
            end=block.end,
            active=block.active,
            reminder_sent=block.reminder_sent,
            status=status,
            created_at=block.created_at,
        )


class SweepSummary(BaseModel):
    message: str = "Cron job completed"
    timestamp: str
    processed: int
    expired: int
    sent: int
    skipped: int
    errors: int
