"""
Quiet Hours Scheduler — Block and Profile Database.

SQLite-backed interval store. Two access levels mirror the row-level
security of a hosted Postgres deployment:

- QuietBlockDB is the service-level store used by the reminder sweeper.
- OwnerBlockStore (from QuietBlockDB.for_owner) confines every query to a
  single owner; rows of other owners are invisible to it.
"""

from __future__ import annotations

import logging
import re
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from quiet_hours.data.models import Profile, QuietBlock
from quiet_hours.ports.profile_port import Contact, ContactResolutionError, MissingEmailError

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")


class StoreError(Exception):
    """Base class for storage failures."""


class StoreReadError(StoreError):
    """Raised when a query against the store fails."""


class StoreWriteError(StoreError):
    """Raised when an insert, update or delete fails."""


def _utc_iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _now_iso() -> str:
    return _utc_iso(datetime.now(timezone.utc))


def _parse_instant(raw: str) -> datetime:
    dt = datetime.fromisoformat(raw)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class _SQLiteStore:
    """Connection handling shared by the stores."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from quiet_hours.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        raise NotImplementedError

    def _fetch(self, query: str, params: Iterable = ()) -> list[sqlite3.Row]:
        try:
            with self._connect() as conn:
                return conn.execute(query, tuple(params)).fetchall()
        except sqlite3.Error as exc:
            raise StoreReadError(str(exc)) from exc

    def _execute(self, query: str, params: Iterable = ()) -> int:
        """Run a write statement and return the affected row count."""
        try:
            with self._connect() as conn:
                cursor = conn.execute(query, tuple(params))
                return cursor.rowcount
        except sqlite3.Error as exc:
            raise StoreWriteError(str(exc)) from exc


class QuietBlockDB(_SQLiteStore):
    """SQLite-backed storage for quiet blocks (service level, unscoped)."""

    def _init_db(self) -> None:
        """Create the quiet_blocks table and indexes if they don't exist."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS quiet_blocks (
                    id             TEXT    PRIMARY KEY,
                    user_id        TEXT    NOT NULL,
                    title          TEXT    NOT NULL CHECK (length(trim(title)) > 0),
                    start_time     TEXT    NOT NULL,
                    end_time       TEXT    NOT NULL,
                    is_active      INTEGER NOT NULL DEFAULT 1,
                    reminder_sent  INTEGER NOT NULL DEFAULT 0,
                    created_at     TEXT    NOT NULL,
                    updated_at     TEXT    NOT NULL,
                    CHECK (end_time > start_time)
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_quiet_blocks_user_id "
                "ON quiet_blocks(user_id)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_quiet_blocks_cron_query "
                "ON quiet_blocks(is_active, reminder_sent, start_time)"
            )
        logger.debug("Quiet blocks table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_block(row: sqlite3.Row) -> QuietBlock:
        return QuietBlock(
            id=row["id"],
            owner_id=row["user_id"],
            title=row["title"],
            start=_parse_instant(row["start_time"]),
            end=_parse_instant(row["end_time"]),
            active=bool(row["is_active"]),
            reminder_sent=bool(row["reminder_sent"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def for_owner(self, owner_id: str) -> OwnerBlockStore:
        """Return a view of the store restricted to one owner's rows."""
        if not owner_id:
            raise ValueError("owner_id is required")
        return OwnerBlockStore(self, owner_id)

    def get_block(self, block_id: str) -> QuietBlock | None:
        """Fetch a single block by ID, regardless of owner."""
        rows = self._fetch("SELECT * FROM quiet_blocks WHERE id = ?", (block_id,))
        if not rows:
            return None
        return self._row_to_block(rows[0])

    def list_active_blocks(self) -> list[QuietBlock]:
        """Return every active block across owners, ordered by start.

        Time windowing is left to the caller.
        """
        rows = self._fetch(
            "SELECT * FROM quiet_blocks WHERE is_active = 1 ORDER BY start_time"
        )
        return [self._row_to_block(r) for r in rows]

    def deactivate_blocks(self, block_ids: list[str]) -> int:
        """Bulk-set is_active = 0. Safe to repeat."""
        if not block_ids:
            return 0
        placeholders = ", ".join("?" for _ in block_ids)
        count = self._execute(
            f"UPDATE quiet_blocks SET is_active = 0, updated_at = ? "
            f"WHERE id IN ({placeholders}) AND is_active = 1",
            [_now_iso(), *block_ids],
        )
        if count:
            logger.info("Deactivated %d expired block(s)", count)
        return count

    def mark_reminder_sent(self, block_id: str) -> bool:
        """Set reminder_sent = 1. Returns False when the block was already marked or is gone."""
        count = self._execute(
            "UPDATE quiet_blocks SET reminder_sent = 1, updated_at = ? "
            "WHERE id = ? AND reminder_sent = 0",
            (_now_iso(), block_id),
        )
        if count:
            logger.info("Block %s marked reminded", block_id)
        return count > 0


class OwnerBlockStore:
    """Owner-scoped access to quiet_blocks.

    Every statement carries ``user_id = ?`` so one owner can never read,
    change or delete another owner's rows.
    """

    def __init__(self, db: QuietBlockDB, owner_id: str) -> None:
        self._db = db
        self.owner_id = owner_id

    def add_block(self, title: str, start: datetime, end: datetime) -> QuietBlock:
        """Insert a new active, unreminded block for this owner."""
        block_id = uuid.uuid4().hex
        now = _now_iso()
        self._db._execute(
            """
            INSERT INTO quiet_blocks
                (id, user_id, title, start_time, end_time,
                 is_active, reminder_sent, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, 1, 0, ?, ?)
            """,
            (block_id, self.owner_id, title, _utc_iso(start), _utc_iso(end), now, now),
        )
        block = QuietBlock(
            id=block_id,
            owner_id=self.owner_id,
            title=title,
            start=start,
            end=end,
            active=True,
            reminder_sent=False,
            created_at=now,
            updated_at=now,
        )
        logger.info("Quiet block added: %s '%s' for owner %s", block_id, title, self.owner_id)
        return block

    def get_block(self, block_id: str) -> QuietBlock | None:
        rows = self._db._fetch(
            "SELECT * FROM quiet_blocks WHERE id = ? AND user_id = ?",
            (block_id, self.owner_id),
        )
        if not rows:
            return None
        return QuietBlockDB._row_to_block(rows[0])

    def list_blocks(self, active_only: bool = True) -> list[QuietBlock]:
        """List this owner's blocks ordered by start, optionally active only."""
        query = "SELECT * FROM quiet_blocks WHERE user_id = ?"
        if active_only:
            query += " AND is_active = 1"
        query += " ORDER BY start_time"
        rows = self._db._fetch(query, (self.owner_id,))
        return [QuietBlockDB._row_to_block(r) for r in rows]

    def deactivate_blocks(self, block_ids: list[str]) -> int:
        """Bulk-set is_active = 0 on this owner's rows only."""
        if not block_ids:
            return 0
        placeholders = ", ".join("?" for _ in block_ids)
        return self._db._execute(
            f"UPDATE quiet_blocks SET is_active = 0, updated_at = ? "
            f"WHERE user_id = ? AND id IN ({placeholders}) AND is_active = 1",
            [_now_iso(), self.owner_id, *block_ids],
        )

    def delete_block(self, block_id: str) -> bool:
        """Permanently delete one of this owner's blocks."""
        count = self._db._execute(
            "DELETE FROM quiet_blocks WHERE id = ? AND user_id = ?",
            (block_id, self.owner_id),
        )
        deleted = count > 0
        if deleted:
            logger.info("Quiet block %s deleted by owner %s", block_id, self.owner_id)
        return deleted


class ProfileDB(_SQLiteStore):
    """SQLite-backed owner profiles; implements ProfilePort."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS profiles (
                    id          TEXT PRIMARY KEY,
                    email       TEXT NOT NULL,
                    full_name   TEXT,
                    created_at  TEXT NOT NULL,
                    updated_at  TEXT NOT NULL
                )
            """)
        logger.debug("Profiles table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_profile(row: sqlite3.Row) -> Profile:
        return Profile(
            id=row["id"],
            email=row["email"],
            full_name=row["full_name"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def add_profile(
        self, owner_id: str, email: str, full_name: str | None = None,
    ) -> Profile:
        """Insert an owner profile. Raises ValueError on a malformed email."""
        email = email.strip()
        if not _EMAIL_RE.match(email):
            raise ValueError(f"Invalid email address: {email!r}")

        now = _now_iso()
        self._execute(
            "INSERT INTO profiles (id, email, full_name, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (owner_id, email, full_name, now, now),
        )
        logger.info("Profile added for owner %s", owner_id)
        return Profile(
            id=owner_id, email=email, full_name=full_name,
            created_at=now, updated_at=now,
        )

    def get_profile(self, owner_id: str) -> Profile | None:
        rows = self._fetch("SELECT * FROM profiles WHERE id = ?", (owner_id,))
        if not rows:
            return None
        return self._row_to_profile(rows[0])

    def resolve_contact(self, owner_id: str) -> Contact:
        """Return the owner's reminder recipient.

        Display name falls back from full name to the email's local part,
        then to "User".
        """
        try:
            profile = self.get_profile(owner_id)
        except StoreReadError as exc:
            raise ContactResolutionError(f"Profile lookup failed for {owner_id}: {exc}") from exc
        if profile is None:
            raise ContactResolutionError(f"No profile found for owner {owner_id}")

        email = (profile.email or "").strip()
        if not email:
            raise MissingEmailError(f"No email found for owner {owner_id}")

        display_name = (profile.full_name or "").strip() or email.split("@")[0] or "User"
        return Contact(email=email, display_name=display_name)
