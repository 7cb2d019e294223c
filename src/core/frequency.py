"""Per-frequency rules: cooldown length and streak bucket arithmetic.

Every Frequency member has exactly one FrequencyRule here. Adding a
frequency means adding one enum member and one table entry.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable

from src.data.models import Frequency


def _days_between(anchor: date, today: date) -> int:
    return (today - anchor).days


def _weeks_between(anchor: date, today: date) -> int:
    return (today - anchor).days // 7


def _months_between(anchor: date, today: date) -> int:
    # Absolute month index, so December -> January is +1 and
    # the same month a year later is +12
    return (today.year * 12 + today.month) - (anchor.year * 12 + anchor.month)


@dataclass(frozen=True)
class FrequencyRule:
    """Calculation strategy for one frequency class."""

    cooldown: timedelta
    periods_between: Callable[[date, date], int]


# Cooldowns are deliberately shorter than the nominal period so a user who
# submits at the same time every day/week/month never drifts later.
_RULES: dict[Frequency, FrequencyRule] = {
    Frequency.DAILY: FrequencyRule(
        cooldown=timedelta(hours=22),
        periods_between=_days_between,
    ),
    Frequency.WEEKLY: FrequencyRule(
        cooldown=timedelta(hours=7 * 24 - 6),
        periods_between=_weeks_between,
    ),
    Frequency.MONTHLY: FrequencyRule(
        cooldown=timedelta(hours=30 * 24 - 6),
        periods_between=_months_between,
    ),
}


def rule_for(frequency: Frequency) -> FrequencyRule:
    """Return the rule for a frequency. Raises KeyError for unknown values."""
    return _RULES[Frequency(frequency)]


def parse_frequency(raw: str) -> Frequency | None:
    """Parse user input like 'Daily' or ' weekly '. Returns None if unknown."""
    try:
        return Frequency(raw.strip().lower())
    except ValueError:
        return None
