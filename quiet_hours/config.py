"""
Quiet Hours Scheduler — Centralized configuration.

Loads all settings from .env and validates them.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

logger = logging.getLogger(__name__)

# Load .env from project root (two levels up from quiet_hours/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)

_DEFAULT_CRON_AGENTS = "cron-job.org,cron-job,UptimeRobot"


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # SQLite
    DATABASE_PATH: str = "data/quiet_hours.db"

    # Reminder windowing
    REMINDER_LEAD_MINUTES: int = 10
    DUE_SLACK_MINUTES: int = 5
    SWEEP_INTERVAL_SECONDS: int = 300
    RUN_SWEEP_LOOP: bool = False

    # Trigger endpoint security
    CRON_SECRET: str = ""
    ENVIRONMENT: str = "development"
    KNOWN_CRON_AGENTS: list[str] = []

    # Email transport: "smtp" | "console"
    EMAIL_BACKEND: str = "smtp"
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_SECURITY: str = "starttls"   # starttls | ssl | none
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    EMAIL_FROM: str = ""              # empty → SMTP_USERNAME
    EMAIL_FROM_NAME: str = "Quiet Hours Scheduler"

    # Fixed offset used when rendering times in reminder emails
    DISPLAY_UTC_OFFSET: str = "+05:30"

    # HTTP server
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    @field_validator("KNOWN_CRON_AGENTS", mode="before")
    @classmethod
    def parse_agents(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [agent.strip() for agent in v.split(",") if agent.strip()]
        return []

    @field_validator("RUN_SWEEP_LOOP", mode="before")
    @classmethod
    def parse_flag(cls, v: str | bool) -> bool:
        if isinstance(v, bool):
            return v
        return str(v).strip().lower() in ("1", "true", "yes", "on")

    @field_validator("SMTP_SECURITY")
    @classmethod
    def check_security(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("starttls", "ssl", "none"):
            raise ValueError(f"SMTP_SECURITY must be starttls, ssl or none, got {v!r}")
        return v

    @field_validator("REMINDER_LEAD_MINUTES", "DUE_SLACK_MINUTES")
    @classmethod
    def non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @field_validator("SWEEP_INTERVAL_SECONDS")
    @classmethod
    def positive_interval(cls, v: int) -> int:
        if v < 1:
            raise ValueError("SWEEP_INTERVAL_SECONDS must be >= 1")
        return v

    @property
    def sender_address(self) -> str:
        return self.EMAIL_FROM or self.SMTP_USERNAME

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.strip().lower() == "production"


def _check_sweep_period(s: Settings) -> None:
    """Warn when the trigger period can step over a whole due window."""
    if s.SWEEP_INTERVAL_SECONDS > 2 * s.DUE_SLACK_MINUTES * 60:
        logger.warning(
            "SWEEP_INTERVAL_SECONDS=%d exceeds twice DUE_SLACK_MINUTES=%d; "
            "reminders can fall between two sweeps and be missed",
            s.SWEEP_INTERVAL_SECONDS, s.DUE_SLACK_MINUTES,
        )


def _load_settings() -> Settings:
    """Load settings from environment."""
    s = Settings(
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/quiet_hours.db"),
        REMINDER_LEAD_MINUTES=os.getenv("REMINDER_LEAD_MINUTES", "10"),
        DUE_SLACK_MINUTES=os.getenv("DUE_SLACK_MINUTES", "5"),
        SWEEP_INTERVAL_SECONDS=os.getenv("SWEEP_INTERVAL_SECONDS", "300"),
        RUN_SWEEP_LOOP=os.getenv("RUN_SWEEP_LOOP", "false"),
        CRON_SECRET=os.getenv("CRON_SECRET", ""),
        ENVIRONMENT=os.getenv("ENVIRONMENT", "development"),
        KNOWN_CRON_AGENTS=os.getenv("KNOWN_CRON_AGENTS", _DEFAULT_CRON_AGENTS),
        EMAIL_BACKEND=os.getenv("EMAIL_BACKEND", "smtp"),
        SMTP_HOST=os.getenv("SMTP_HOST", "smtp.gmail.com"),
        SMTP_PORT=os.getenv("SMTP_PORT", "587"),
        SMTP_SECURITY=os.getenv("SMTP_SECURITY", "starttls"),
        SMTP_USERNAME=os.getenv("SMTP_USERNAME", ""),
        SMTP_PASSWORD=os.getenv("SMTP_PASSWORD", ""),
        EMAIL_FROM=os.getenv("EMAIL_FROM", ""),
        EMAIL_FROM_NAME=os.getenv("EMAIL_FROM_NAME", "Quiet Hours Scheduler"),
        DISPLAY_UTC_OFFSET=os.getenv("DISPLAY_UTC_OFFSET", "+05:30"),
        API_HOST=os.getenv("API_HOST", "0.0.0.0"),
        API_PORT=os.getenv("API_PORT", "8000"),
    )
    _check_sweep_period(s)
    return s


# Singleton — imported by all other modules as:
#   from quiet_hours.config import settings
settings = _load_settings()
