"""
StreakKeeper — Stale-window reminder sweep.

Runs on a fixed interval. For every objective whose window has been open
longer than the stale threshold, and which has not yet been reminded for
that window, one reminder is dispatched. The outcome decides the
bookkeeping:

    DELIVERED                  -> last_reminded = now
    PERMANENTLY_UNDELIVERABLE  -> last_reminded = now (no retry storm)
    TRANSIENT_FAILURE          -> untouched, retried on the next sweep

Each objective is handled on its own; one failure never stops the sweep.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable

from src.core.window_calculator import next_allowed
from src.data.models import Objective
from src.ports.notification_port import DeliveryOutcome

if TYPE_CHECKING:
    from src.ports.notification_port import NotificationPort
    from src.ports.objective_store_port import ObjectiveStore

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    """Counters for one sweep tick."""

    scanned: int = 0
    due: int = 0
    delivered: int = 0
    undeliverable: int = 0
    failed: int = 0


def default_reminder_text(objective: Objective) -> str:
    return (
        f"⏰ Reminder: you haven't submitted your objective \"{objective.name}\" "
        "since it became available. Don't forget to keep your streak going!"
    )


def is_reminder_due(
    objective: Objective,
    now: datetime,
    stale_threshold: timedelta,
) -> bool:
    """True when the window has been open past the threshold and this
    window has no recorded reminder yet.

    Never-submitted objectives have no window to go stale and are never due.
    """
    if objective.last_submitted is None:
        return False

    window_open = next_allowed(objective.frequency, objective.last_submitted, now)
    if now <= window_open + stale_threshold:
        return False

    # A reminder recorded against an earlier window does not count
    return objective.last_reminded is None or objective.last_reminded < window_open


async def _dispatch(
    notifier: NotificationPort,
    objective: Objective,
    text: str,
    send_timeout: float | None,
) -> DeliveryOutcome:
    try:
        return await asyncio.wait_for(notifier.send(objective.owner_id, text), timeout=send_timeout)
    except asyncio.TimeoutError:
        logger.error(
            "Reminder to user %d for '%s' timed out after %ss",
            objective.owner_id, objective.name, send_timeout,
        )
    except Exception as exc:
        logger.error(
            "Reminder to user %d for '%s' failed: %s",
            objective.owner_id, objective.name, exc,
        )
    return DeliveryOutcome.TRANSIENT_FAILURE


async def remind_objective(
    store: ObjectiveStore,
    notifier: NotificationPort,
    objective: Objective,
    now: datetime,
    render: Callable[[Objective], str] = default_reminder_text,
    send_timeout: float | None = None,
) -> DeliveryOutcome:
    """Send one reminder and record it unless the failure was transient."""
    outcome = await _dispatch(notifier, objective, render(objective), send_timeout)

    if outcome is DeliveryOutcome.TRANSIENT_FAILURE:
        return outcome

    if outcome is DeliveryOutcome.PERMANENTLY_UNDELIVERABLE:
        logger.warning(
            "User %d is unreachable; marking '%s' as reminded for this window",
            objective.owner_id, objective.name,
        )
    else:
        logger.info("Reminder sent to user %d for '%s'", objective.owner_id, objective.name)

    if not store.mark_reminded(objective.owner_id, objective.name, now):
        logger.info(
            "Objective '%s' of user %d disappeared before the reminder was recorded",
            objective.name, objective.owner_id,
        )
    return outcome


async def run_reminder_sweep(
    store: ObjectiveStore,
    notifier: NotificationPort,
    now: datetime,
    stale_threshold: timedelta,
    render: Callable[[Objective], str] = default_reminder_text,
    send_timeout: float | None = None,
) -> SweepReport:
    """Scan every objective once and remind the stale ones."""
    report = SweepReport()

    try:
        objectives = store.list_all()
    except Exception as exc:
        logger.error("Reminder sweep could not load objectives: %s", exc)
        return report

    for objective in objectives:
        report.scanned += 1
        if not is_reminder_due(objective, now, stale_threshold):
            continue
        report.due += 1

        try:
            outcome = await remind_objective(
                store, notifier, objective, now, render=render, send_timeout=send_timeout,
            )
        except Exception as exc:
            logger.error(
                "Reminder bookkeeping for user %d '%s' failed: %s",
                objective.owner_id, objective.name, exc,
            )
            report.failed += 1
            continue

        if outcome is DeliveryOutcome.DELIVERED:
            report.delivered += 1
        elif outcome is DeliveryOutcome.PERMANENTLY_UNDELIVERABLE:
            report.undeliverable += 1
        else:
            report.failed += 1

    logger.info(
        "Reminder sweep: scanned=%d due=%d delivered=%d undeliverable=%d failed=%d",
        report.scanned, report.due, report.delivered, report.undeliverable, report.failed,
    )
    return report
