"""Clock port — source of the current instant.

Injected everywhere time matters so window logic can be tested without
the wall clock.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol


class Clock(Protocol):
    """Returns timezone-aware instants."""

    def now(self) -> datetime: ...
