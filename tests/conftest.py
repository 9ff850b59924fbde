"""Shared test fixtures and configuration.

Sets fake environment variables before any quiet_hours import so the
settings singleton is deterministic, and provides temp-file stores.
"""

import os

# Patch env vars BEFORE any quiet_hours imports
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("EMAIL_BACKEND", "console")
os.environ.setdefault("CRON_SECRET", "")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("RUN_SWEEP_LOOP", "false")
os.environ.setdefault("DISPLAY_UTC_OFFSET", "+05:30")

import pytest


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_quiet_hours.db")


@pytest.fixture
def block_db(tmp_db_path):
    """Return a QuietBlockDB instance backed by a temp file."""
    from quiet_hours.data.db import QuietBlockDB
    return QuietBlockDB(db_path=tmp_db_path)


@pytest.fixture
def profile_db(tmp_db_path):
    """Return a ProfileDB sharing the temp file with block_db."""
    from quiet_hours.data.db import ProfileDB
    return ProfileDB(db_path=tmp_db_path)


@pytest.fixture
def console_mailer():
    from quiet_hours.adapters.console_mailer import ConsoleMailer
    return ConsoleMailer()
