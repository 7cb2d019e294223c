"""Streak evaluator — does a submission extend the chain or restart it?

No I/O: this module only transforms data.
"""

from __future__ import annotations

import logging
from datetime import date

from src.core.frequency import rule_for
from src.data.models import Frequency

logger = logging.getLogger(__name__)


def next_streak(
    frequency: Frequency,
    previous_streak: int,
    last_anchor: date | None,
    today: date,
) -> tuple[int, date]:
    """Return (new_streak, new_anchor) for a submission made on `today`.

    The chain extends only when `today` falls exactly one period after the
    anchor: the next day (daily), 7-13 days later (weekly), or the next
    calendar month (monthly). Any other gap, including a same-day
    resubmission, restarts at 1. The anchor always moves to `today`.
    """
    if last_anchor is None:
        return 1, today

    gap = rule_for(frequency).periods_between(last_anchor, today)
    if gap == 1:
        return previous_streak + 1, today

    logger.debug(
        "Streak reset for %s: gap of %d period(s) since %s",
        frequency.value, gap, last_anchor.isoformat(),
    )
    return 1, today
