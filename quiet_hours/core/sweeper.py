"""
Quiet Hours Scheduler — Reminder Sweeper.

One sweep per trigger: expire finished blocks, pick the blocks whose
reminder is due around "now", and send one reminder attempt per due block.
A block is marked reminded only after the transport accepted its email.

The trigger is at-least-once and imprecise, so a block counts as due while
"now" is within DUE_SLACK of (start - REMINDER_LEAD) and before start. With
a trigger period <= 2 * slack no due instant falls between two sweeps.

This module is store- and transport-agnostic: it depends on the store
methods used below, ProfilePort and EmailPort.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Iterable

from quiet_hours.core.reminder_message import build_reminder_email
from quiet_hours.data.db import StoreWriteError
from quiet_hours.ports.profile_port import ContactResolutionError

if TYPE_CHECKING:
    from quiet_hours.data.db import QuietBlockDB
    from quiet_hours.data.models import QuietBlock
    from quiet_hours.ports.email_port import EmailPort
    from quiet_hours.ports.profile_port import ProfilePort

logger = logging.getLogger(__name__)

REMINDER_LEAD = timedelta(minutes=10)
DUE_SLACK = timedelta(minutes=5)


@dataclass
class SweepReport:
    """Summary of one sweep, returned to the trigger caller."""

    timestamp: str
    processed: int = 0
    expired: int = 0
    due: int = 0
    sent: int = 0
    skipped: int = 0
    errors: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# Windowing (pure)
# ---------------------------------------------------------------------------


def partition_expired(
    blocks: Iterable[QuietBlock], now: datetime,
) -> tuple[list[QuietBlock], list[QuietBlock]]:
    """Split into (expired, live): expired blocks have end <= now."""
    expired: list[QuietBlock] = []
    live: list[QuietBlock] = []
    for block in blocks:
        (expired if block.end <= now else live).append(block)
    return expired, live


def reminder_at(block: QuietBlock, lead: timedelta = REMINDER_LEAD) -> datetime:
    return block.start - lead


def is_due(
    block: QuietBlock,
    now: datetime,
    lead: timedelta = REMINDER_LEAD,
    slack: timedelta = DUE_SLACK,
) -> bool:
    """Whether a reminder for block should go out at now."""
    if block.start <= now:
        return False
    return abs(now - reminder_at(block, lead)) <= slack


def select_due(
    live: Iterable[QuietBlock],
    now: datetime,
    lead: timedelta = REMINDER_LEAD,
    slack: timedelta = DUE_SLACK,
) -> list[QuietBlock]:
    return [b for b in live if is_due(b, now, lead, slack)]


# ---------------------------------------------------------------------------
# Sweeper
# ---------------------------------------------------------------------------


class ReminderSweeper:
    """Runs sweeps against injected store, profile and email collaborators."""

    def __init__(
        self,
        store: QuietBlockDB,
        profiles: ProfilePort,
        mailer: EmailPort,
        *,
        lead: timedelta = REMINDER_LEAD,
        slack: timedelta = DUE_SLACK,
        display_tz: timezone = timezone.utc,
        sender_name: str = "Quiet Hours Scheduler",
    ) -> None:
        self._store = store
        self._profiles = profiles
        self._mailer = mailer
        self.lead = lead
        self.slack = slack
        self._display_tz = display_tz
        self._sender_name = sender_name

    async def sweep(self, now: datetime | None = None) -> SweepReport:
        """Run one sweep.

        Raises StoreReadError when the active blocks cannot be read; every
        other failure is per block, logged and counted in the report.
        """
        now = now or datetime.now(timezone.utc)
        report = SweepReport(timestamp=now.isoformat())

        active = self._store.list_active_blocks()
        report.processed = len(active)

        # 1. Lifecycle reconciliation, reminded or not
        expired, live = partition_expired(active, now)
        if expired:
            try:
                self._store.deactivate_blocks([b.id for b in expired])
            except StoreWriteError as exc:
                logger.error("Error deactivating %d expired block(s): %s", len(expired), exc)
        report.expired = len(expired)

        # 2. Due-window selection over blocks still waiting for a reminder
        pending = [b for b in live if not b.reminder_sent]
        due = select_due(pending, now, self.lead, self.slack)
        report.due = len(due)
        logger.info(
            "Sweep at %s: %d active block(s), %d expired, %d due",
            report.timestamp, report.processed, report.expired, report.due,
        )

        # 3. Dispatch
        for block in due:
            try:
                outcome = await self._dispatch(block)
            except Exception:
                logger.exception("Unexpected error dispatching reminder for block %s", block.id)
                outcome = "error"
            if outcome == "sent":
                report.sent += 1
            elif outcome == "skipped":
                report.skipped += 1
            else:
                report.errors += 1

        return report

    async def _dispatch(self, block: QuietBlock) -> str:
        """Send one reminder; returns "sent", "skipped" or "error"."""
        try:
            contact = self._profiles.resolve_contact(block.owner_id)
        except ContactResolutionError as exc:
            logger.warning("Skipping block %s: %s", block.id, exc)
            return "skipped"

        message = build_reminder_email(
            contact,
            block,
            lead_minutes=int(self.lead.total_seconds() // 60),
            display_tz=self._display_tz,
            sender_name=self._sender_name,
        )

        try:
            await self._mailer.deliver(message)
        except Exception as exc:
            logger.error("Failed to send reminder for block %s: %s", block.id, exc)
            return "error"

        try:
            self._store.mark_reminder_sent(block.id)
        except StoreWriteError as exc:
            logger.error("Error updating reminder status for block %s: %s", block.id, exc)
            return "error"

        logger.info("Reminder sent for block %s '%s'", block.id, block.title)
        return "sent"
