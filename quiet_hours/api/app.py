"""
Quiet Hours Scheduler — HTTP application.

Routes:
- GET|POST /api/cron       run one reminder sweep (externally polled trigger)
- POST     /api/blocks     create a block for the calling owner
- GET      /api/blocks     list the owner's live blocks
- DELETE   /api/blocks/id  delete one of the owner's blocks
- GET      /api/health

Collaborators are injected into create_app() and kept on app.state; the
process entry point owns their lifecycle.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, FastAPI, Request, Response, status
from fastapi.responses import JSONResponse

from quiet_hours.api.auth import get_owner_id, require_cron_authorization
from quiet_hours.api.schemas import BlockCreate, BlockOut, SweepSummary
from quiet_hours.config import settings
from quiet_hours.core.block_service import (
    block_status,
    create_quiet_block,
    delete_owner_block,
    list_owner_blocks,
)
from quiet_hours.core.overlap_guard import OverlapError, ValidationError
from quiet_hours.core.reminder_message import parse_utc_offset
from quiet_hours.core.sweeper import ReminderSweeper
from quiet_hours.data.db import StoreError, StoreReadError

if TYPE_CHECKING:
    from quiet_hours.data.db import QuietBlockDB
    from quiet_hours.ports.email_port import EmailPort
    from quiet_hours.ports.profile_port import ProfilePort

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


# ---------------------------------------------------------------------------
# Sweep trigger
# ---------------------------------------------------------------------------


async def run_sweep(app: FastAPI) -> SweepSummary:
    """Run one sweep, never two at once within this process."""
    async with app.state.sweep_lock:
        report = await app.state.sweeper.sweep()
    return SweepSummary(
        timestamp=report.timestamp,
        processed=report.processed,
        expired=report.expired,
        sent=report.sent,
        skipped=report.skipped,
        errors=report.errors,
    )


@router.api_route(
    "/cron",
    methods=["GET", "POST"],
    response_model=SweepSummary,
    dependencies=[Depends(require_cron_authorization)],
)
async def cron_trigger(request: Request):
    logger.info("Cron request received")
    try:
        return await run_sweep(request.app)
    except StoreReadError as exc:
        logger.error("Error fetching quiet blocks: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to fetch quiet blocks", "details": str(exc)},
        )


# ---------------------------------------------------------------------------
# Owner endpoints
# ---------------------------------------------------------------------------


@router.post("/blocks", response_model=BlockOut, status_code=status.HTTP_201_CREATED)
def create_block(
    body: BlockCreate,
    request: Request,
    owner_id: str = Depends(get_owner_id),
) -> BlockOut:
    now = datetime.now(timezone.utc)
    block = create_quiet_block(
        request.app.state.block_db, owner_id, body.title, body.start, body.end, now=now,
    )
    return BlockOut.from_block(block, block_status(block, now))


@router.get("/blocks", response_model=list[BlockOut])
def list_blocks(request: Request, owner_id: str = Depends(get_owner_id)) -> list[BlockOut]:
    now = datetime.now(timezone.utc)
    blocks = list_owner_blocks(request.app.state.block_db, owner_id, now=now)
    return [BlockOut.from_block(b, block_status(b, now)) for b in blocks]


@router.delete("/blocks/{block_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_block(block_id: str, request: Request, owner_id: str = Depends(get_owner_id)) -> Response:
    if not delete_owner_block(request.app.state.block_db, owner_id, block_id):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": "Block not found"})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/health")
async def health() -> dict:
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(OverlapError)
    async def _overlap(request: Request, exc: OverlapError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={
                "reason": exc.reason.value,
                "detail": str(exc),
                "conflicts": [b.id for b in exc.conflicting],
            },
        )

    @app.exception_handler(ValidationError)
    async def _invalid(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"reason": exc.reason.value, "detail": str(exc)},
        )

    @app.exception_handler(StoreError)
    async def _store(request: Request, exc: StoreError) -> JSONResponse:
        logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Storage failure"},
        )


# ---------------------------------------------------------------------------
# Periodic in-process trigger
# ---------------------------------------------------------------------------


async def _sweep_loop(app: FastAPI, interval_seconds: float) -> None:
    """Sweep every interval; failures are logged and the loop carries on."""
    while True:
        try:
            summary = await run_sweep(app)
            logger.info("Periodic sweep: sent=%d errors=%d", summary.sent, summary.errors)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Periodic sweep failed: %s", exc)
        await asyncio.sleep(interval_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI):
    task = None
    if app.state.run_sweep_loop:
        interval = app.state.sweep_interval_seconds
        task = asyncio.create_task(_sweep_loop(app, interval), name="reminder_sweep")
        logger.info("Reminder sweep loop started, every %ss", interval)

    yield

    if task is not None:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Reminder sweep loop stopped")


def create_app(
    block_db: QuietBlockDB,
    profiles: ProfilePort,
    mailer: EmailPort,
    *,
    sweeper: ReminderSweeper | None = None,
    run_sweep_loop: bool | None = None,
    sweep_interval_seconds: float | None = None,
) -> FastAPI:
    """Build the FastAPI app around the given store, profile lookup and mailer."""
    if sweeper is None:
        sweeper = ReminderSweeper(
            block_db,
            profiles,
            mailer,
            lead=timedelta(minutes=settings.REMINDER_LEAD_MINUTES),
            slack=timedelta(minutes=settings.DUE_SLACK_MINUTES),
            display_tz=parse_utc_offset(settings.DISPLAY_UTC_OFFSET),
            sender_name=settings.EMAIL_FROM_NAME,
        )

    app = FastAPI(title="Quiet Hours Scheduler", version="0.1.0", lifespan=lifespan)
    app.state.block_db = block_db
    app.state.profiles = profiles
    app.state.mailer = mailer
    app.state.sweeper = sweeper
    app.state.sweep_lock = asyncio.Lock()
    app.state.run_sweep_loop = (
        settings.RUN_SWEEP_LOOP if run_sweep_loop is None else run_sweep_loop
    )
    app.state.sweep_interval_seconds = (
        settings.SWEEP_INTERVAL_SECONDS if sweep_interval_seconds is None else sweep_interval_seconds
    )

    register_error_handlers(app)
    app.include_router(router)
    logger.info("Quiet Hours API built (sweep loop: %s)", app.state.run_sweep_loop)
    return app
