"""System clock adapter — implements Clock with the wall clock in UTC."""

from __future__ import annotations

from datetime import datetime, timezone


class SystemClock:
    """Wall-clock implementation of Clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
