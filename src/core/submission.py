"""
StreakKeeper — Submission transition.

Decides whether a submission is accepted right now and what the objective
looks like afterwards. evaluate_submission is pure; try_submit reads the
record, evaluates it and persists the result with a compare-and-swap so at
most one concurrent submit per window can win.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone, tzinfo
from enum import Enum
from typing import TYPE_CHECKING

from src.core.streak_evaluator import next_streak
from src.core.window_calculator import next_allowed
from src.data.models import Objective

if TYPE_CHECKING:
    from src.ports.objective_store_port import ObjectiveStore

logger = logging.getLogger(__name__)

# Compare-and-swap retries before giving up on a submission
_MAX_SWAP_ATTEMPTS = 3
_BUSY_DETAIL = "Couldn't record your submission. Please try again."


class RejectReason(str, Enum):
    """Why a user-triggered operation was refused."""

    TOO_SOON = "too_soon"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INVALID = "invalid"


@dataclass(frozen=True)
class Rejected:
    """A user-facing, recoverable refusal."""

    reason: RejectReason
    retry_at: datetime | None = None   # only set for TOO_SOON
    detail: str = ""


@dataclass(frozen=True)
class Accepted:
    """A recorded submission."""

    objective: Objective               # post-update record
    streak: int
    next_window_open: datetime


def evaluate_submission(
    objective: Objective,
    now: datetime,
    tz: tzinfo = timezone.utc,
) -> Accepted | Rejected:
    """Apply a submission attempt at `now` to `objective` without persisting it.

    The streak day is `now` seen in `tz`.
    """
    window_open = next_allowed(objective.frequency, objective.last_submitted, now)
    if objective.last_submitted is not None and now < window_open:
        return Rejected(RejectReason.TOO_SOON, retry_at=window_open)

    today = now.astimezone(tz).date()
    streak, anchor = next_streak(
        objective.frequency, objective.streak, objective.last_streak_anchor, today,
    )
    updated = replace(
        objective,
        last_submitted=now,
        streak=streak,
        last_streak_anchor=anchor,
    )
    return Accepted(
        objective=updated,
        streak=streak,
        next_window_open=next_allowed(updated.frequency, updated.last_submitted, now),
    )


def try_submit(
    store: ObjectiveStore,
    owner_id: int,
    name: str,
    now: datetime,
    tz: tzinfo = timezone.utc,
) -> Accepted | Rejected:
    """Submit `name` for `owner_id` at `now` and persist the accepted state.

    A lost compare-and-swap means another submit was recorded in between;
    the record is re-read and evaluated again, which rejects it as too soon.
    """
    for _ in range(_MAX_SWAP_ATTEMPTS):
        objective = store.get(owner_id, name)
        if objective is None:
            return Rejected(RejectReason.NOT_FOUND, detail=name)

        result = evaluate_submission(objective, now, tz)
        if isinstance(result, Rejected):
            logger.info(
                "Submission rejected: %d '%s' until %s",
                owner_id, name, result.retry_at.isoformat() if result.retry_at else "-",
            )
            return result

        if store.record_submission(result.objective, objective.last_submitted):
            return result

    logger.warning("Submission for %d '%s' kept losing to concurrent writers", owner_id, name)
    latest = store.get(owner_id, name)
    if latest is None:
        return Rejected(RejectReason.NOT_FOUND, detail=name)
    if latest.last_submitted is None:
        return Rejected(RejectReason.TOO_SOON, detail=_BUSY_DETAIL)
    retry_at = next_allowed(latest.frequency, latest.last_submitted, now)
    return Rejected(RejectReason.TOO_SOON, retry_at=retry_at)
