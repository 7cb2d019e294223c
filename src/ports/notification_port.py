"""Notification port — abstract interface for sending messages to users.

Core modules depend on this protocol, never on a specific messaging provider.
Adapters map their transport errors onto DeliveryOutcome; they do not raise
for delivery failures.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol


class DeliveryOutcome(str, Enum):
    """Result of a single send attempt, as seen by the reminder sweep."""

    DELIVERED = "delivered"
    PERMANENTLY_UNDELIVERABLE = "permanently_undeliverable"
    TRANSIENT_FAILURE = "transient_failure"


class NotificationPort(Protocol):
    """Abstract notification interface used by core modules."""

    async def send(self, owner_id: int, text: str) -> DeliveryOutcome: ...
