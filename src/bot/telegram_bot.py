"""
StreakKeeper — Telegram Bot.

Telegram is the only user interface. Users create objectives, submit a
photo as proof, and get a direct-message reminder when a window has been
open too long without a submission.

Unauthorized users are silently ignored.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime, timedelta
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Coroutine
from zoneinfo import ZoneInfo

from telegram import Update
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from src.config import settings
from src.core.frequency import parse_frequency
from src.core.submission import Accepted, Rejected, RejectReason
from src.data.models import Visibility

if TYPE_CHECKING:
    from src.core.objective_service import ObjectiveService
    from src.data.db import PreferenceDB
    from src.ports.clock_port import Clock
    from src.ports.notification_port import NotificationPort
    from src.ports.objective_store_port import ObjectiveStore

logger = logging.getLogger(__name__)

# Streaks are only shown once they are worth bragging about
_STREAK_DISPLAY_MIN = 3

_SUBMIT_CAPTION = re.compile(r"^/submit(?:@\w+)?(?:\s+(?P<name>.*))?$", re.DOTALL)


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def _is_allowed(user_id: int) -> bool:
    return not settings.ALLOWED_USER_IDS or user_id in settings.ALLOWED_USER_IDS


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores messages from unauthorized users.

    An empty ALLOWED_USER_IDS opens the bot to everyone.
    """

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        if user is None or not _is_allowed(user.id):
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return  # Silent ignore
        return await func(update, context)

    return wrapper


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def _format_relative(target: datetime, now: datetime) -> str:
    """Render a future instant as 'in 5h 12m' style text."""
    remaining = target - now
    if remaining <= timedelta(0):
        return "now"
    minutes = math.ceil(remaining.total_seconds() / 60)
    days, minutes = divmod(minutes, 24 * 60)
    hours, minutes = divmod(minutes, 60)
    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes and not days:
        parts.append(f"{minutes}m")
    return "in " + " ".join(parts)


def _format_when(target: datetime, now: datetime) -> str:
    local = target.astimezone(ZoneInfo(settings.TIMEZONE))
    return f"{_format_relative(target, now)} ({local:%Y-%m-%d %H:%M})"


def _streak_suffix(streak: int, sep: str = "\n") -> str:
    return f"{sep}Streak: {streak} 🔥" if streak > _STREAK_DISPLAY_MIN else ""


def _rejection_text(rejected: Rejected, now: datetime | None = None) -> str:
    if rejected.reason is RejectReason.TOO_SOON and rejected.retry_at is not None and now:
        return f"You have already submitted this objective. Try again {_format_when(rejected.retry_at, now)}."
    if rejected.reason is RejectReason.NOT_FOUND:
        return (
            f"Objective \"{rejected.detail}\" not found. "
            "Create it first with /create_objective."
        )
    if rejected.reason is RejectReason.CONFLICT:
        return f"An objective named \"{rejected.detail}\" already exists."
    return rejected.detail or "Invalid input."


def _split_rename_args(args: list[str]) -> tuple[str, str] | None:
    """Parse '/rename old name | new name' into (old, new)."""
    text = " ".join(args)
    if "|" not in text:
        return None
    current, new = text.split("|", 1)
    return current.strip(), new.strip()


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start — welcome message."""
    await update.message.reply_text(
        "Welcome to *StreakKeeper*!\n\n"
        "Create an objective, then send a photo with the caption "
        "`/submit <objective>` each time you complete it. "
        "I'll keep your streak and remind you when you fall behind.\n\n"
        "Type /help for the full command list.",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help — list available commands."""
    await update.message.reply_text(
        "Available commands:\n"
        "/create_objective <daily|weekly|monthly> <name> — Create an objective\n"
        "/objectives — List your objectives\n"
        "/submit <name> — Send as the caption of a photo to submit\n"
        "/delete_objective <name> — Delete an objective forever\n"
        "/rename <current name> | <new name> — Rename an objective\n"
        "/visibility [private|shared] — Where submissions are posted\n"
        "/help — Show this message",
    )


@authorized_only
async def cmd_create_objective(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /create_objective <frequency> <name>."""
    service: ObjectiveService = context.bot_data["service"]
    args = context.args or []
    if len(args) < 2:
        await update.message.reply_text(
            "Usage: /create_objective <daily|weekly|monthly> <name>"
        )
        return

    frequency = parse_frequency(args[0])
    if frequency is None:
        await update.message.reply_text("Frequency must be daily, weekly or monthly.")
        return

    try:
        result = service.create(update.effective_user.id, " ".join(args[1:]), frequency)
    except Exception as exc:
        logger.error("/create_objective error: %s", exc)
        await update.message.reply_text("Couldn't create the objective. Please try again.")
        return

    if isinstance(result, Rejected):
        await update.message.reply_text(_rejection_text(result))
        return

    await update.message.reply_text(
        f"Objective \"{result.name}\" ({result.frequency.value}) created!"
    )


@authorized_only
async def cmd_objectives(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /objectives — list the user's objectives and their windows."""
    service: ObjectiveService = context.bot_data["service"]
    clock: Clock = context.bot_data["clock"]

    try:
        statuses = service.list_objectives(update.effective_user.id)
    except Exception as exc:
        logger.error("/objectives error: %s", exc)
        await update.message.reply_text("Couldn't load objectives. Please try again.")
        return

    if not statuses:
        await update.message.reply_text("You have no objectives.")
        return

    now = clock.now()
    lines = ["Your objectives:"]
    for status in statuses:
        obj = status.objective
        when = "Available now" if status.available_now else _format_when(status.next_allowed, now)
        lines.append(
            f"- {obj.name} ({obj.frequency.value}) - {when}"
            + _streak_suffix(obj.streak, sep=" | ")
        )
    await update.message.reply_text("\n".join(lines))


@authorized_only
async def cmd_submit(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /submit sent as plain text — a photo is required."""
    if context.args:
        await update.message.reply_text(
            "Missing image. Send a photo with the caption /submit <objective>."
        )
    else:
        await update.message.reply_text("Missing both image and objective.")


@authorized_only
async def handle_submit_photo(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle a photo captioned '/submit <objective>'."""
    service: ObjectiveService = context.bot_data["service"]
    clock: Clock = context.bot_data["clock"]

    match = _SUBMIT_CAPTION.match((update.message.caption or "").strip())
    name = (match.group("name") or "").strip() if match else ""
    if not name:
        await update.message.reply_text("Missing objective.")
        return

    user = update.effective_user
    try:
        result = service.submit(user.id, name)
    except Exception as exc:
        logger.error("/submit error: %s", exc)
        await update.message.reply_text("Couldn't record your submission. Please try again.")
        return

    now = clock.now()
    if isinstance(result, Rejected):
        await update.message.reply_text(_rejection_text(result, now))
        return

    await _announce_submission(update, context, service, result, now)


async def _announce_submission(
    update: Update,
    context: ContextTypes.DEFAULT_TYPE,
    service: ObjectiveService,
    accepted: Accepted,
    now: datetime,
) -> None:
    """Post the confirmation publicly or privately per the user's visibility."""
    user = update.effective_user
    text = (
        f"Objective '{accepted.objective.name}' completed!"
        + _streak_suffix(accepted.streak)
        + f"\n{user.first_name} can submit this objective again "
        + _format_when(accepted.next_window_open, now)
    )

    visibility = service.get_visibility(user.id)
    if visibility is Visibility.SHARED:
        photo = update.message.photo[-1]
        await update.message.reply_photo(photo=photo.file_id, caption=text)
        return

    try:
        await context.bot.send_message(chat_id=user.id, text=text)
    except Exception as exc:
        logger.warning("Private confirmation to %d failed: %s", user.id, exc)
        await update.message.reply_text(text)


@authorized_only
async def cmd_delete_objective(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /delete_objective <name>."""
    service: ObjectiveService = context.bot_data["service"]
    name = " ".join(context.args or [])

    try:
        result = service.delete(update.effective_user.id, name)
    except Exception as exc:
        logger.error("/delete_objective error: %s", exc)
        await update.message.reply_text("Couldn't delete the objective. Please try again.")
        return

    if isinstance(result, Rejected):
        await update.message.reply_text(_rejection_text(result))
        return

    await update.message.reply_text(f"Objective \"{result.name}\" has been deleted forever.")


@authorized_only
async def cmd_rename(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /rename <current> | <new>."""
    service: ObjectiveService = context.bot_data["service"]
    names = _split_rename_args(context.args or [])
    if names is None:
        await update.message.reply_text("Usage: /rename <current name> | <new name>")
        return

    current, new = names
    try:
        result = service.rename(update.effective_user.id, current, new)
    except Exception as exc:
        logger.error("/rename error: %s", exc)
        await update.message.reply_text("Couldn't rename the objective. Please try again.")
        return

    if isinstance(result, Rejected):
        await update.message.reply_text(_rejection_text(result))
        return

    await update.message.reply_text(f"Objective \"{current}\" has been renamed to \"{result.name}\".")


@authorized_only
async def cmd_visibility(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /visibility [private|shared] — show or change visibility."""
    service: ObjectiveService = context.bot_data["service"]
    user_id = update.effective_user.id
    args = context.args or []

    if not args:
        try:
            current = service.get_visibility(user_id)
        except Exception as exc:
            logger.error("/visibility error: %s", exc)
            await update.message.reply_text("Couldn't load your visibility. Please try again.")
            return
        await update.message.reply_text(f"Your submissions are {current.value}.")
        return

    try:
        visibility = Visibility(args[0].strip().lower())
    except ValueError:
        await update.message.reply_text("Usage: /visibility [private|shared]")
        return

    try:
        service.set_visibility(user_id, visibility)
    except Exception as exc:
        logger.error("/visibility error: %s", exc)
        await update.message.reply_text("Couldn't change your visibility. Please try again.")
        return

    await update.message.reply_text(f"Your submissions are now {visibility.value}.")


# ---------------------------------------------------------------------------
# App wiring
# ---------------------------------------------------------------------------


def build_app(
    objective_db: ObjectiveStore | None = None,
    preference_db: PreferenceDB | None = None,
    notifier: NotificationPort | None = None,
    clock: Clock | None = None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        objective_db: Objective store. Defaults to ObjectiveDB at DATABASE_PATH.
        preference_db: Preference store. Defaults to PreferenceDB at DATABASE_PATH.
        notifier: Notification port implementation. Defaults to TelegramNotifier
                  (created from the bot instance after app is built).
        clock: Clock implementation. Defaults to SystemClock.
    """
    from src.core.objective_service import ObjectiveService

    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).build()

    # Wire default adapters if not provided
    if objective_db is None:
        from src.data.db import ObjectiveDB
        objective_db = ObjectiveDB()

    if preference_db is None:
        from src.data.db import PreferenceDB
        preference_db = PreferenceDB()

    if notifier is None:
        from src.adapters.telegram_notifier import TelegramNotifier
        notifier = TelegramNotifier(app.bot)

    if clock is None:
        from src.adapters.system_clock import SystemClock
        clock = SystemClock()

    service = ObjectiveService(
        objective_db, preference_db, clock, tz=ZoneInfo(settings.TIMEZONE),
    )

    # Store ports in bot_data for handler access
    app.bot_data["service"] = service
    app.bot_data["notifier"] = notifier
    app.bot_data["clock"] = clock

    # Commands
    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("create_objective", cmd_create_objective))
    app.add_handler(CommandHandler(["objectives", "list_objectives"], cmd_objectives))
    app.add_handler(CommandHandler("submit", cmd_submit))
    app.add_handler(CommandHandler("delete_objective", cmd_delete_objective))
    app.add_handler(CommandHandler("rename", cmd_rename))
    app.add_handler(CommandHandler("visibility", cmd_visibility))

    # Photo submissions: the command lives in the caption
    app.add_handler(MessageHandler(
        filters.PHOTO & filters.CaptionRegex(r"^/submit(@\w+)?(\s|$)"),
        handle_submit_photo,
    ))

    _setup_reminder_sweep(app, objective_db, notifier, clock)

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def _setup_reminder_sweep(
    app: Application,
    objective_db: ObjectiveStore,
    notifier: NotificationPort,
    clock: Clock,
) -> None:
    """Register the repeating stale-window reminder job."""
    from src.core.reminder_scanner import run_reminder_sweep

    stale_threshold = timedelta(hours=settings.STALE_THRESHOLD_HOURS)
    interval = timedelta(minutes=settings.REMINDER_INTERVAL_MINUTES)

    async def _reminder_job_callback(context: ContextTypes.DEFAULT_TYPE) -> None:
        await run_reminder_sweep(
            objective_db,
            notifier,
            clock.now(),
            stale_threshold,
            send_timeout=settings.REMINDER_SEND_TIMEOUT_SECONDS,
        )

    app.job_queue.run_repeating(
        _reminder_job_callback,
        interval=interval,
        first=interval,
        name="reminder_sweep",
    )

    logger.info(
        "Reminder sweep scheduled every %d min (stale after %dh)",
        settings.REMINDER_INTERVAL_MINUTES,
        settings.STALE_THRESHOLD_HOURS,
    )


def main() -> None:
    """Entry point: build the app and start polling."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting StreakKeeper bot...")
    app = build_app()
    app.run_polling()


if __name__ == "__main__":
    main()
