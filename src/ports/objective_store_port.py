"""Objective store port — abstract interface for durable objective records.

Core modules depend on this protocol, never on SQLite directly. Implementations
must make record_submission an atomic compare-and-swap on last_submitted.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from src.data.models import Frequency, Objective


class ObjectiveStore(Protocol):
    """Abstract objective storage used by core modules."""

    def create(self, owner_id: int, name: str, frequency: Frequency) -> Objective: ...

    def get(self, owner_id: int, name: str) -> Objective | None: ...

    def list_for_owner(self, owner_id: int) -> list[Objective]: ...

    def list_all(self) -> list[Objective]: ...

    def upsert(self, objective: Objective) -> None: ...

    def record_submission(
        self, objective: Objective, expected_last_submitted: datetime | None,
    ) -> bool: ...

    def mark_reminded(self, owner_id: int, name: str, at: datetime) -> bool: ...

    def delete(self, owner_id: int, name: str) -> bool: ...

    def rename(self, owner_id: int, current_name: str, new_name: str) -> Objective: ...
