"""Tests for quiet_hours.core.block_service — creation and listing flows."""

import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from quiet_hours.core.block_service import (
    OwnerLocks,
    block_status,
    create_quiet_block,
    delete_owner_block,
    list_owner_blocks,
)
from quiet_hours.core.overlap_guard import OverlapError, RejectionReason, ValidationError
from quiet_hours.data.db import StoreWriteError
from quiet_hours.data.models import BlockStatus, QuietBlock

_NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _at(minutes):
    return _NOW + timedelta(minutes=minutes)


class TestCreateQuietBlock:
    def test_creates_block(self, block_db):
        block = create_quiet_block(block_db, "u1", "  Deep work ", _at(10), _at(70), now=_NOW)
        assert block.title == "Deep work"
        assert block_db.get_block(block.id).owner_id == "u1"

    def test_back_to_back_succeeds(self, block_db):
        create_quiet_block(block_db, "u1", "A", _at(10), _at(70), now=_NOW)
        second = create_quiet_block(block_db, "u1", "B", _at(70), _at(100), now=_NOW)
        assert second.start == _at(70)

    def test_same_start_fails_with_overlap(self, block_db):
        first = create_quiet_block(block_db, "u1", "A", _at(10), _at(70), now=_NOW)
        with pytest.raises(OverlapError) as exc_info:
            create_quiet_block(block_db, "u1", "B", _at(10), _at(20), now=_NOW)
        assert [b.id for b in exc_info.value.conflicting] == [first.id]
        assert len(block_db.for_owner("u1").list_blocks()) == 1

    def test_other_owner_may_overlap(self, block_db):
        create_quiet_block(block_db, "u1", "A", _at(10), _at(70), now=_NOW)
        create_quiet_block(block_db, "u2", "B", _at(10), _at(70), now=_NOW)
        assert len(block_db.list_active_blocks()) == 2

    def test_empty_title_never_persisted(self, block_db):
        with pytest.raises(ValidationError) as exc_info:
            create_quiet_block(block_db, "u1", "", _at(10), _at(70), now=_NOW)
        assert exc_info.value.reason is RejectionReason.EMPTY_TITLE
        assert block_db.for_owner("u1").list_blocks(active_only=False) == []

    def test_invalid_range_never_persisted(self, block_db):
        with pytest.raises(ValidationError) as exc_info:
            create_quiet_block(block_db, "u1", "A", _at(70), _at(10), now=_NOW)
        assert exc_info.value.reason is RejectionReason.INVALID_RANGE
        assert block_db.for_owner("u1").list_blocks(active_only=False) == []

    def test_expired_block_does_not_block_new_one(self, block_db):
        old = create_quiet_block(block_db, "u1", "Old", _at(-120), _at(-60), now=_at(-180))
        # A new block overlapping the finished one is allowed and the old one is reconciled.
        create_quiet_block(block_db, "u1", "New", _at(-90), _at(30), now=_NOW)
        assert block_db.get_block(old.id).active is False

    def test_concurrent_creates_admit_only_one(self, block_db):
        results: list[str] = []
        barrier = threading.Barrier(5)

        def _worker(i):
            barrier.wait()
            try:
                create_quiet_block(block_db, "u1", f"T{i}", _at(10), _at(70), now=_NOW)
                results.append("ok")
            except OverlapError:
                results.append("overlap")

        threads = [threading.Thread(target=_worker, args=(i,)) for i in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count("ok") == 1
        assert results.count("overlap") == 4


    def test_undeactivated_expired_block_still_blocks_overlap(self):
        stale = QuietBlock(id="old", owner_id="u1", title="Old", start=_at(-120), end=_at(-60))
        owner_store = MagicMock()
        owner_store.owner_id = "u1"
        owner_store.list_blocks.return_value = [stale]
        owner_store.deactivate_blocks.side_effect = StoreWriteError("disk full")
        db = MagicMock()
        db.for_owner.return_value = owner_store

        with pytest.raises(OverlapError) as exc_info:
            create_quiet_block(db, "u1", "New", _at(-90), _at(30), now=_NOW)

        assert [b.id for b in exc_info.value.conflicting] == ["old"]
        owner_store.add_block.assert_not_called()


class TestOwnerLocks:
    def test_same_owner_same_lock(self):
        locks = OwnerLocks()
        assert locks.for_owner("u1") is locks.for_owner("u1")

    def test_different_owners_different_locks(self):
        locks = OwnerLocks()
        assert locks.for_owner("u1") is not locks.for_owner("u2")


class TestListOwnerBlocks:
    def test_deactivates_expired_and_hides_them(self, block_db):
        past = create_quiet_block(block_db, "u1", "Past", _at(-120), _at(-60), now=_at(-180))
        future = create_quiet_block(block_db, "u1", "Future", _at(10), _at(70), now=_NOW)

        blocks = list_owner_blocks(block_db, "u1", now=_NOW)

        assert [b.id for b in blocks] == [future.id]
        assert block_db.get_block(past.id).active is False

    def test_block_ending_exactly_now_is_expired(self, block_db):
        b = create_quiet_block(block_db, "u1", "Edge", _at(-60), _at(0), now=_at(-70))
        assert list_owner_blocks(block_db, "u1", now=_NOW) == []
        assert block_db.get_block(b.id).active is False

    def test_write_failure_still_lists(self):
        block = QuietBlock(id="b1", owner_id="u1", title="Past", start=_at(-60), end=_at(-1))
        live = QuietBlock(id="b2", owner_id="u1", title="Live", start=_at(5), end=_at(60))
        owner_store = MagicMock()
        owner_store.owner_id = "u1"
        owner_store.list_blocks.return_value = [block, live]
        owner_store.deactivate_blocks.side_effect = StoreWriteError("disk full")
        db = MagicMock()
        db.for_owner.return_value = owner_store

        assert list_owner_blocks(db, "u1", now=_NOW) == [live]


class TestDeleteOwnerBlock:
    def test_delete_own(self, block_db):
        b = create_quiet_block(block_db, "u1", "A", _at(10), _at(70), now=_NOW)
        assert delete_owner_block(block_db, "u1", b.id) is True

    def test_delete_foreign_is_refused(self, block_db):
        b = create_quiet_block(block_db, "u2", "A", _at(10), _at(70), now=_NOW)
        assert delete_owner_block(block_db, "u1", b.id) is False


class TestBlockStatus:
    def test_statuses(self):
        block = QuietBlock(id="b", owner_id="u1", title="x", start=_at(0), end=_at(60))
        assert block_status(block, _at(-1)) is BlockStatus.UPCOMING
        assert block_status(block, _at(0)) is BlockStatus.IN_PROGRESS
        assert block_status(block, _at(59)) is BlockStatus.IN_PROGRESS
        assert block_status(block, _at(60)) is BlockStatus.COMPLETED
