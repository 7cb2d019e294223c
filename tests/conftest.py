"""Shared test fixtures and configuration.

Sets up fake environment variables so src.config doesn't sys.exit(),
and provides common fixtures like a temp DB and a controllable clock.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("ALLOWED_USER_IDS", "12345")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("TIMEZONE", "UTC")

from datetime import datetime, timedelta, timezone

import pytest


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_objectives.db")


@pytest.fixture
def objective_db(tmp_db_path):
    """Return an ObjectiveDB instance backed by a temp file."""
    from src.data.db import ObjectiveDB
    return ObjectiveDB(db_path=tmp_db_path)


@pytest.fixture
def preference_db(tmp_db_path):
    """Return a PreferenceDB instance sharing the objectives' temp file."""
    from src.data.db import PreferenceDB
    return PreferenceDB(db_path=tmp_db_path)


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 3, 10, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def service(objective_db, preference_db, clock):
    from src.core.objective_service import ObjectiveService
    return ObjectiveService(objective_db, preference_db, clock)
