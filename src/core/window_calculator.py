"""Window calculator — when an objective can be submitted again.

No I/O: this module only transforms data.
"""

from __future__ import annotations

from datetime import datetime

from src.core.frequency import rule_for
from src.data.models import Frequency


def next_allowed(
    frequency: Frequency,
    last_submitted: datetime | None,
    now: datetime,
) -> datetime:
    """Return the instant the submission window (re)opens.

    Never-submitted objectives are open immediately, so `now` is returned.
    """
    if last_submitted is None:
        return now
    return last_submitted + rule_for(frequency).cooldown


def is_window_open(
    frequency: Frequency,
    last_submitted: datetime | None,
    now: datetime,
) -> bool:
    """True when a submission would be accepted at `now`."""
    return now >= next_allowed(frequency, last_submitted, now)
