"""
StreakKeeper — Data Models.

Objectives persist in SQLite across restarts. An objective is keyed by
(owner_id, name); its frequency is fixed when it is created.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum


class Frequency(str, Enum):
    """How often an objective can be submitted."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class Visibility(str, Enum):
    """Where submission confirmations are posted."""

    PRIVATE = "private"
    SHARED = "shared"


@dataclass
class Objective:
    """A recurring commitment tracked for a single user."""

    owner_id: int
    name: str
    frequency: Frequency
    last_submitted: datetime | None = None     # aware, UTC
    streak: int = 0
    last_streak_anchor: date | None = None     # day of the last counted submission
    last_reminded: datetime | None = None      # aware, UTC


@dataclass
class UserPreference:
    """Per-user settings. Created lazily on first write."""

    owner_id: int
    visibility: Visibility = Visibility.PRIVATE
