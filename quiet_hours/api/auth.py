"""
HTTP authorization helpers.

- The cron trigger accepts a shared bearer secret, and tolerates known
  scheduling services and non-production environments without one.
- Owner endpoints trust the X-User-Id header set by the upstream
  authenticating proxy; the owner id then scopes every store query.
"""

from __future__ import annotations

import hmac
import logging

from fastapi import Header, HTTPException, Request, status

from quiet_hours.config import settings

logger = logging.getLogger(__name__)


def _bearer_matches(auth_header: str | None, secret: str) -> bool:
    raw = (auth_header or "").strip()
    if not raw.lower().startswith("bearer "):
        return False
    provided = raw.split(" ", 1)[1].strip()
    return bool(provided) and hmac.compare_digest(provided, secret)


def _is_known_cron_agent(user_agent: str | None) -> bool:
    ua = user_agent or ""
    return any(agent in ua for agent in settings.KNOWN_CRON_AGENTS)


def require_cron_authorization(request: Request) -> None:
    """Gate the sweep trigger endpoint."""
    secret = settings.CRON_SECRET
    if not secret:
        logger.debug("No CRON_SECRET configured, allowing request")
        return

    if _bearer_matches(request.headers.get("Authorization"), secret):
        return

    if not settings.is_production or _is_known_cron_agent(request.headers.get("User-Agent")):
        logger.info("Cron request without valid secret allowed (non-production or known cron service)")
        return

    logger.warning("Cron request rejected - unauthorized")
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


def get_owner_id(x_user_id: str | None = Header(default=None)) -> str:
    """Return the authenticated owner id or fail with 401."""
    owner_id = (x_user_id or "").strip()
    if not owner_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return owner_id
