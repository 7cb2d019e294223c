"""
StreakKeeper — Objective Database.

Objectives and user preferences persist in SQLite across restarts.
Every objective is addressed by (owner_id, name). Submissions are written
with a compare-and-swap on last_submitted so two concurrent submits for the
same objective can never both be recorded.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime, timezone
from pathlib import Path

from src.data.models import Frequency, Objective, UserPreference, Visibility

logger = logging.getLogger(__name__)

# Seconds a writer waits on a locked database before giving up
_BUSY_TIMEOUT = 30.0


class StoreError(Exception):
    """Base class for objective store failures."""


class ConflictError(StoreError):
    """Raised when an (owner_id, name) pair is already taken."""


class NotFoundError(StoreError):
    """Raised when the addressed objective does not exist."""


def _to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        raise ValueError(f"Naive datetime is not allowed: {value!r}")
    return value.astimezone(timezone.utc).isoformat()


def _from_iso(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


class ObjectiveDB:
    """SQLite-backed storage for objectives."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=_BUSY_TIMEOUT)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        """Create the objectives table if it doesn't exist."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS objectives (
                    owner_id           INTEGER NOT NULL,
                    name               TEXT    NOT NULL,
                    frequency          TEXT    NOT NULL,
                    last_submitted     TEXT,
                    streak             INTEGER NOT NULL DEFAULT 0,
                    last_streak_anchor TEXT,
                    last_reminded      TEXT,
                    PRIMARY KEY (owner_id, name)
                )
            """)
        logger.debug("Objectives table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_objective(row: sqlite3.Row) -> Objective:
        anchor = row["last_streak_anchor"]
        return Objective(
            owner_id=row["owner_id"],
            name=row["name"],
            frequency=Frequency(row["frequency"]),
            last_submitted=_from_iso(row["last_submitted"]),
            streak=row["streak"],
            last_streak_anchor=date.fromisoformat(anchor) if anchor else None,
            last_reminded=_from_iso(row["last_reminded"]),
        )

    def create(self, owner_id: int, name: str, frequency: Frequency) -> Objective:
        """Insert a fresh objective. Raises ConflictError if the name is taken."""
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO objectives
                        (owner_id, name, frequency, last_submitted, streak,
                         last_streak_anchor, last_reminded)
                    VALUES (?, ?, ?, NULL, 0, NULL, NULL)
                    """,
                    (owner_id, name, frequency.value),
                )
        except sqlite3.IntegrityError as exc:
            raise ConflictError(f"Objective {name!r} already exists for {owner_id}") from exc

        logger.info("Objective created: %d '%s' (%s)", owner_id, name, frequency.value)
        return Objective(owner_id=owner_id, name=name, frequency=frequency)

    def get(self, owner_id: int, name: str) -> Objective | None:
        """Fetch a single objective, or None."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM objectives WHERE owner_id = ? AND name = ?",
                (owner_id, name),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_objective(row)

    def list_for_owner(self, owner_id: int) -> list[Objective]:
        """Return all objectives of one user, ordered by name."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM objectives WHERE owner_id = ? ORDER BY name",
                (owner_id,),
            ).fetchall()
        return [self._row_to_objective(r) for r in rows]

    def list_all(self) -> list[Objective]:
        """Return every objective of every user."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM objectives ORDER BY owner_id, name"
            ).fetchall()
        return [self._row_to_objective(r) for r in rows]

    def upsert(self, objective: Objective) -> None:
        """Write the full record, inserting it if it doesn't exist."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO objectives
                    (owner_id, name, frequency, last_submitted, streak,
                     last_streak_anchor, last_reminded)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(owner_id, name) DO UPDATE SET
                    frequency          = excluded.frequency,
                    last_submitted     = excluded.last_submitted,
                    streak             = excluded.streak,
                    last_streak_anchor = excluded.last_streak_anchor,
                    last_reminded      = excluded.last_reminded
                """,
                (
                    objective.owner_id,
                    objective.name,
                    objective.frequency.value,
                    _to_iso(objective.last_submitted),
                    objective.streak,
                    objective.last_streak_anchor.isoformat()
                    if objective.last_streak_anchor else None,
                    _to_iso(objective.last_reminded),
                ),
            )

    def record_submission(
        self, objective: Objective, expected_last_submitted: datetime | None,
    ) -> bool:
        """Store a submission only if last_submitted is still the expected value.

        Returns False when another writer got there first; nothing is
        written in that case.
        """
        conn = self._connect()
        # Take the write lock up front so racing writers queue on the busy timeout
        conn.isolation_level = None
        try:
            conn.execute("BEGIN IMMEDIATE")
            cursor = conn.execute(
                """
                UPDATE objectives
                   SET last_submitted = ?, streak = ?, last_streak_anchor = ?
                 WHERE owner_id = ? AND name = ? AND last_submitted IS ?
                """,
                (
                    _to_iso(objective.last_submitted),
                    objective.streak,
                    objective.last_streak_anchor.isoformat()
                    if objective.last_streak_anchor else None,
                    objective.owner_id,
                    objective.name,
                    _to_iso(expected_last_submitted),
                ),
            )
            conn.execute("COMMIT")
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

        swapped = cursor.rowcount > 0
        if swapped:
            logger.info(
                "Submission recorded: %d '%s' streak=%d",
                objective.owner_id, objective.name, objective.streak,
            )
        else:
            logger.info(
                "Submission lost compare-and-swap: %d '%s'",
                objective.owner_id, objective.name,
            )
        return swapped

    def mark_reminded(self, owner_id: int, name: str, at: datetime) -> bool:
        """Set last_reminded only. Returns False if the objective is gone."""
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE objectives SET last_reminded = ? WHERE owner_id = ? AND name = ?",
                (_to_iso(at), owner_id, name),
            )
        return cursor.rowcount > 0

    def delete(self, owner_id: int, name: str) -> bool:
        """Permanently delete an objective."""
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM objectives WHERE owner_id = ? AND name = ?",
                (owner_id, name),
            )
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Objective deleted: %d '%s'", owner_id, name)
        return deleted

    def rename(self, owner_id: int, current_name: str, new_name: str) -> Objective:
        """Rename an objective in place.

        Raises NotFoundError if current_name is missing and ConflictError if
        new_name is taken; neither record changes in those cases.
        """
        if current_name == new_name:
            if self.get(owner_id, current_name) is None:
                raise NotFoundError(f"Objective {current_name!r} not found for {owner_id}")
            raise ConflictError(f"Objective {new_name!r} already exists for {owner_id}")

        try:
            with self._connect() as conn:
                cursor = conn.execute(
                    "UPDATE objectives SET name = ? WHERE owner_id = ? AND name = ?",
                    (new_name, owner_id, current_name),
                )
        except sqlite3.IntegrityError as exc:
            raise ConflictError(
                f"Objective {new_name!r} already exists for {owner_id}"
            ) from exc

        if cursor.rowcount == 0:
            raise NotFoundError(f"Objective {current_name!r} not found for {owner_id}")

        logger.info("Objective renamed: %d '%s' -> '%s'", owner_id, current_name, new_name)
        renamed = self.get(owner_id, new_name)
        if renamed is None:
            raise NotFoundError(f"Objective {new_name!r} vanished after rename")
        return renamed


class PreferenceDB:
    """SQLite-backed storage for per-user preferences."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=_BUSY_TIMEOUT)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS user_preferences (
                    owner_id   INTEGER PRIMARY KEY,
                    visibility TEXT NOT NULL DEFAULT 'private'
                )
            """)
        logger.debug("Preferences table initialized at %s", self._db_path)

    def get(self, owner_id: int) -> UserPreference:
        """Return the stored preference, or the defaults if none was written."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM user_preferences WHERE owner_id = ?", (owner_id,),
            ).fetchone()
        if row is None:
            return UserPreference(owner_id=owner_id)
        return UserPreference(owner_id=row["owner_id"], visibility=Visibility(row["visibility"]))

    def set_visibility(self, owner_id: int, visibility: Visibility) -> UserPreference:
        """Create or update the user's visibility."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO user_preferences (owner_id, visibility) VALUES (?, ?)
                ON CONFLICT(owner_id) DO UPDATE SET visibility = excluded.visibility
                """,
                (owner_id, visibility.value),
            )
        logger.info("Visibility for user %d set to %s", owner_id, visibility.value)
        return UserPreference(owner_id=owner_id, visibility=visibility)
