"""
StreakKeeper — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str

    # SQLite
    DATABASE_PATH: str = "data/objectives.db"

    # Security: an empty list opens the bot to everyone
    ALLOWED_USER_IDS: list[int] = []

    # Calendar day used for streaks is taken in this timezone
    TIMEZONE: str = "UTC"

    # Reminder sweep
    REMINDER_INTERVAL_MINUTES: int = 60
    STALE_THRESHOLD_HOURS: int = 24
    REMINDER_SEND_TIMEOUT_SECONDS: float = 30.0

    @field_validator("ALLOWED_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []

    @field_validator("REMINDER_INTERVAL_MINUTES", "STALE_THRESHOLD_HOURS", mode="before")
    @classmethod
    def parse_int(cls, v: str | int) -> int:
        value = int(v)
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/objectives.db"),
        ALLOWED_USER_IDS=os.getenv("ALLOWED_USER_IDS", ""),
        TIMEZONE=os.getenv("TIMEZONE", "UTC"),
        REMINDER_INTERVAL_MINUTES=os.getenv("REMINDER_INTERVAL_MINUTES", "60"),
        STALE_THRESHOLD_HOURS=os.getenv("STALE_THRESHOLD_HOURS", "24"),
        REMINDER_SEND_TIMEOUT_SECONDS=os.getenv("REMINDER_SEND_TIMEOUT_SECONDS", "30"),
    )


# Singleton — imported by all other modules as:
#   from src.config import settings
settings = _load_settings()
