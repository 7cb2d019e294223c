"""Telegram notification adapter — implements NotificationPort.

Wraps a telegram.Bot instance and translates Telegram API errors into
DeliveryOutcome values:

    Forbidden                               -> PERMANENTLY_UNDELIVERABLE
    BadRequest "chat not found"/"user not found" -> PERMANENTLY_UNDELIVERABLE
    anything else (TimedOut, RetryAfter, NetworkError, ...) -> TRANSIENT_FAILURE
"""

from __future__ import annotations

import logging

from telegram import Bot
from telegram.error import BadRequest, Forbidden, TelegramError

from src.ports.notification_port import DeliveryOutcome

logger = logging.getLogger(__name__)

# BadRequest descriptions that mean the recipient can never be reached
_UNREACHABLE_MARKERS = ("chat not found", "user not found")


def classify_telegram_error(exc: Exception) -> DeliveryOutcome:
    """Map an exception raised by the Bot API onto a delivery outcome."""
    if isinstance(exc, Forbidden):
        # Bot blocked, user deactivated, or the user never started the bot
        return DeliveryOutcome.PERMANENTLY_UNDELIVERABLE
    if isinstance(exc, BadRequest):
        message = str(exc).lower()
        if any(marker in message for marker in _UNREACHABLE_MARKERS):
            return DeliveryOutcome.PERMANENTLY_UNDELIVERABLE
    return DeliveryOutcome.TRANSIENT_FAILURE


class TelegramNotifier:
    """Telegram implementation of NotificationPort."""

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def send(self, owner_id: int, text: str) -> DeliveryOutcome:
        try:
            await self._bot.send_message(chat_id=owner_id, text=text)
        except TelegramError as exc:
            outcome = classify_telegram_error(exc)
            if outcome is DeliveryOutcome.PERMANENTLY_UNDELIVERABLE:
                logger.warning("User %d cannot receive messages: %s", owner_id, exc)
            else:
                logger.error("Failed to send message to user %d: %s", owner_id, exc)
            return outcome
        return DeliveryOutcome.DELIVERED
