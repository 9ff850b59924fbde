"""
Quiet Hours Scheduler — Block creation and listing.

The owner-facing flows: admit-then-insert for new blocks, and the
dashboard listing that deactivates expired blocks as it reads them.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from quiet_hours.core.overlap_guard import OverlapError, admit, validate_block_request
from quiet_hours.data.db import StoreWriteError
from quiet_hours.data.models import BlockStatus, QuietBlock

if TYPE_CHECKING:
    from quiet_hours.data.db import OwnerBlockStore, QuietBlockDB

logger = logging.getLogger(__name__)


class OwnerLocks:
    """One lock per owner, created on first use."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: defaultdict[str, threading.Lock] = defaultdict(threading.Lock)

    def for_owner(self, owner_id: str) -> threading.Lock:
        with self._guard:
            return self._locks[owner_id]


_default_locks = OwnerLocks()


def block_status(block: QuietBlock, now: datetime) -> BlockStatus:
    if now < block.start:
        return BlockStatus.UPCOMING
    if now < block.end:
        return BlockStatus.IN_PROGRESS
    return BlockStatus.COMPLETED


def _reconcile_expired(owner_store: OwnerBlockStore, blocks: list[QuietBlock], now: datetime) -> list[QuietBlock]:
    """Deactivate expired blocks (best effort) and return the blocks still active.

    Expired blocks stay in the result when their deactivation failed.
    """
    expired_ids = [b.id for b in blocks if b.active and b.end <= now]
    if expired_ids:
        try:
            owner_store.deactivate_blocks(expired_ids)
        except StoreWriteError as exc:
            logger.error(
                "Error deactivating expired blocks for owner %s: %s",
                owner_store.owner_id, exc,
            )
            return [b for b in blocks if b.active]
    return [b for b in blocks if b.active and b.end > now]


def create_quiet_block(
    db: QuietBlockDB,
    owner_id: str,
    title: str,
    start: datetime,
    end: datetime,
    *,
    now: datetime | None = None,
    locks: OwnerLocks | None = None,
) -> QuietBlock:
    """Validate, check for overlaps and insert a block for owner_id.

    Raises:
        ValidationError: empty title or invalid range.
        OverlapError: the interval intersects an active block of the owner.
        StoreReadError / StoreWriteError: the store failed.
    """
    validate_block_request(title, start, end)
    now = now or datetime.now(timezone.utc)
    locks = locks or _default_locks
    owner_store = db.for_owner(owner_id)

    # Snapshot, check and insert must not interleave for the same owner.
    with locks.for_owner(owner_id):
        existing = _reconcile_expired(owner_store, owner_store.list_blocks(active_only=True), now)
        result = admit(owner_id, start, end, existing)
        if not result.accepted:
            raise OverlapError(result.conflicting_blocks)
        return owner_store.add_block(title.strip(), start, end)


def list_owner_blocks(
    db: QuietBlockDB,
    owner_id: str,
    *,
    now: datetime | None = None,
) -> list[QuietBlock]:
    """Return the owner's live blocks, deactivating expired ones on the way."""
    now = now or datetime.now(timezone.utc)
    owner_store = db.for_owner(owner_id)
    blocks = _reconcile_expired(owner_store, owner_store.list_blocks(active_only=True), now)
    return [b for b in blocks if b.end > now]


def delete_owner_block(db: QuietBlockDB, owner_id: str, block_id: str) -> bool:
    """Delete one of the owner's blocks. False when the owner has no such block."""
    return db.for_owner(owner_id).delete_block(block_id)
