"""
StreakKeeper — Objective service.

The single entry point the bot uses for every user-triggered operation:
create, list, submit, delete, rename and visibility. Store exceptions are
translated into Rejected results here, so callers only ever branch on
return values.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import TYPE_CHECKING

from src.core.submission import Accepted, Rejected, RejectReason, try_submit
from src.core.window_calculator import next_allowed
from src.data.db import ConflictError, NotFoundError
from src.data.models import Frequency, Objective, UserPreference, Visibility

if TYPE_CHECKING:
    from src.data.db import PreferenceDB
    from src.ports.clock_port import Clock
    from src.ports.objective_store_port import ObjectiveStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ObjectiveStatus:
    """An objective plus its window as of the listing time."""

    objective: Objective
    next_allowed: datetime
    available_now: bool


def _clean_name(name: str | None) -> str:
    return (name or "").strip()


class ObjectiveService:
    """Validates input and orchestrates the store for one request at a time."""

    def __init__(
        self,
        objectives: ObjectiveStore,
        preferences: PreferenceDB,
        clock: Clock,
        tz: tzinfo = timezone.utc,
    ) -> None:
        self._objectives = objectives
        self._preferences = preferences
        self._clock = clock
        self._tz = tz

    def create(
        self, owner_id: int, name: str, frequency: Frequency | None,
    ) -> Objective | Rejected:
        name = _clean_name(name)
        if not name or frequency is None:
            return Rejected(RejectReason.INVALID, detail="Objective name and frequency are required.")
        try:
            return self._objectives.create(owner_id, name, Frequency(frequency))
        except ConflictError:
            logger.info("Create rejected: user %d already has '%s'", owner_id, name)
            return Rejected(RejectReason.CONFLICT, detail=name)

    def list_objectives(self, owner_id: int) -> list[ObjectiveStatus]:
        now = self._clock.now()
        statuses = []
        for objective in self._objectives.list_for_owner(owner_id):
            reopen = next_allowed(objective.frequency, objective.last_submitted, now)
            statuses.append(ObjectiveStatus(
                objective=objective,
                next_allowed=reopen,
                available_now=objective.last_submitted is None or now >= reopen,
            ))
        return statuses

    def submit(self, owner_id: int, name: str) -> Accepted | Rejected:
        name = _clean_name(name)
        if not name:
            return Rejected(RejectReason.INVALID, detail="Missing objective.")
        return try_submit(self._objectives, owner_id, name, self._clock.now(), self._tz)

    def delete(self, owner_id: int, name: str) -> Objective | Rejected:
        name = _clean_name(name)
        if not name:
            return Rejected(RejectReason.INVALID, detail="Objective name is required.")
        objective = self._objectives.get(owner_id, name)
        if objective is None or not self._objectives.delete(owner_id, name):
            return Rejected(RejectReason.NOT_FOUND, detail=name)
        return objective

    def rename(self, owner_id: int, current_name: str, new_name: str) -> Objective | Rejected:
        current_name = _clean_name(current_name)
        new_name = _clean_name(new_name)
        if not current_name or not new_name:
            return Rejected(
                RejectReason.INVALID, detail="Both current name and new name are required.",
            )
        try:
            return self._objectives.rename(owner_id, current_name, new_name)
        except NotFoundError:
            return Rejected(RejectReason.NOT_FOUND, detail=current_name)
        except ConflictError:
            logger.info("Rename rejected: user %d already has '%s'", owner_id, new_name)
            return Rejected(RejectReason.CONFLICT, detail=new_name)

    def get_visibility(self, owner_id: int) -> Visibility:
        return self._preferences.get(owner_id).visibility

    def set_visibility(self, owner_id: int, visibility: Visibility) -> UserPreference:
        return self._preferences.set_visibility(owner_id, visibility)
