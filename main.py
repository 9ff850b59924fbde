"""
Quiet Hours Scheduler — Entry Point.

`python main.py` serves the HTTP API (cron trigger + block endpoints).
`python main.py sweep` runs a single reminder sweep and prints its summary.
"""

import asyncio
import json
import logging
import sys
from datetime import timedelta

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from quiet_hours.adapters.mailer_factory import create_mailer
from quiet_hours.api.app import create_app
from quiet_hours.config import settings
from quiet_hours.core.reminder_message import parse_utc_offset
from quiet_hours.core.sweeper import ReminderSweeper
from quiet_hours.data.db import ProfileDB, QuietBlockDB, StoreReadError

logger = logging.getLogger(__name__)


def build_sweeper() -> ReminderSweeper:
    block_db = QuietBlockDB()
    return ReminderSweeper(
        block_db,
        ProfileDB(),
        create_mailer(),
        lead=timedelta(minutes=settings.REMINDER_LEAD_MINUTES),
        slack=timedelta(minutes=settings.DUE_SLACK_MINUTES),
        display_tz=parse_utc_offset(settings.DISPLAY_UTC_OFFSET),
        sender_name=settings.EMAIL_FROM_NAME,
    )


def run_once() -> int:
    """Run one sweep for system cron; non-zero exit when candidates can't be read."""
    try:
        report = asyncio.run(build_sweeper().sweep())
    except StoreReadError as exc:
        logger.error("Sweep failed: %s", exc)
        print(json.dumps({"error": "Failed to fetch quiet blocks", "details": str(exc)}))
        return 1
    print(json.dumps(report.to_dict()))
    return 0


def serve() -> None:
    import uvicorn

    block_db = QuietBlockDB()
    profiles = ProfileDB()
    app = create_app(block_db, profiles, create_mailer())
    logger.info("Starting Quiet Hours Scheduler on %s:%d", settings.API_HOST, settings.API_PORT)
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "sweep":
        sys.exit(run_once())
    serve()
