"""
Habit Tracker Backend - Habit Service
=====================================

What:  CRUD for a user's habits and the per-day completion logs under them.
How:   Every query is scoped by user_id. A habit that exists but belongs to
       someone else is reported exactly like a missing one (NotFoundError).
Who:   /api/habits routes.

Logs:
    One row per (habit, day). upsert_log() uses SQLite's
    INSERT ... ON CONFLICT(habit_id, date) DO UPDATE, so marking the same day
    twice updates the existing row. The write and the read-back run in one
    transaction on one connection.

Dates are bound as ISO strings; the sqlite3 default date adapters are
deprecated and never relied on.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

import aiosqlite

from habit_tracker.database.pool import ConnectionPool
from habit_tracker.exceptions import NotFoundError, ValidationError
from habit_tracker.schemas.habit import HabitCreate, HabitLogUpsert, HabitUpdate
from habit_tracker.utils import db_utils

logger = logging.getLogger(__name__)

HABIT_COLUMNS = (
    "id, user_id, name, description, frequency, start_date, end_date, created_at, updated_at"
)
LOG_COLUMNS = "id, habit_id, date, completed, notes, created_at, updated_at"

# Columns a PATCH may touch, and which of them may be set to null
UPDATABLE_COLUMNS = ("name", "description", "frequency", "start_date", "end_date")
NULLABLE_COLUMNS = {"description", "end_date"}


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class HabitService:
    # ══════════════════════════════════════════════════════════════════════
    # Habits
    # ══════════════════════════════════════════════════════════════════════

    async def list_habits(self, pool: ConnectionPool, user_id: int) -> List[Dict[str, Any]]:
        return await db_utils.query(
            pool,
            f"SELECT {HABIT_COLUMNS} FROM habits WHERE user_id = ? ORDER BY id",
            (user_id,),
        )

    async def get_habit(self, pool: ConnectionPool, user_id: int, habit_id: int) -> Dict[str, Any]:
        row = await db_utils.query_one(
            pool,
            f"SELECT {HABIT_COLUMNS} FROM habits WHERE id = ? AND user_id = ?",
            (habit_id, user_id),
        )
        if row is None:
            raise NotFoundError(resource="habit", resource_id=str(habit_id))
        return row

    async def create_habit(
        self, pool: ConnectionPool, user_id: int, data: HabitCreate
    ) -> Dict[str, Any]:
        habit_id = await db_utils.insert(
            pool,
            "INSERT INTO habits (user_id, name, description, frequency, start_date, end_date) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                user_id,
                data.name,
                data.description,
                data.frequency,
                _iso(data.start_date),
                _iso(data.end_date),
            ),
        )
        logger.info("Created habit %d for user %d", habit_id, user_id)
        return await self.get_habit(pool, user_id, habit_id)

    async def update_habit(
        self, pool: ConnectionPool, user_id: int, habit_id: int, data: HabitUpdate
    ) -> Dict[str, Any]:
        """
        Apply a partial update.

        Raises:
            NotFoundError: no such habit for this user.
            ValidationError: a required field was set to null, or the merged
                start/end dates are out of order.
        """
        current = await self.get_habit(pool, user_id, habit_id)
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return current

        nulled = sorted(k for k, v in changes.items() if v is None and k not in NULLABLE_COLUMNS)
        if nulled:
            raise ValidationError(
                "Required fields cannot be null",
                errors={field: "may not be null" for field in nulled},
            )

        start = changes.get("start_date") or date.fromisoformat(current["start_date"])
        end = changes["end_date"] if "end_date" in changes else current["end_date"]
        if isinstance(end, str):
            end = date.fromisoformat(end)
        if end is not None and end < start:
            raise ValidationError(
                "end_date must not be before start_date",
                errors={"end_date": "must not be before start_date"},
            )

        columns = [c for c in UPDATABLE_COLUMNS if c in changes]
        assignments = ", ".join(f"{c} = ?" for c in columns)
        params = [
            _iso(changes[c]) if isinstance(changes[c], date) else changes[c] for c in columns
        ]
        await db_utils.update(
            pool,
            f"UPDATE habits SET {assignments}, updated_at = CURRENT_TIMESTAMP "
            "WHERE id = ? AND user_id = ?",
            (*params, habit_id, user_id),
        )
        return await self.get_habit(pool, user_id, habit_id)

    async def delete_habit(self, pool: ConnectionPool, user_id: int, habit_id: int) -> None:
        """Delete a habit; its logs go with it (ON DELETE CASCADE)."""
        removed = await db_utils.remove(
            pool, "DELETE FROM habits WHERE id = ? AND user_id = ?", (habit_id, user_id)
        )
        if removed == 0:
            raise NotFoundError(resource="habit", resource_id=str(habit_id))
        logger.info("Deleted habit %d for user %d", habit_id, user_id)

    # ══════════════════════════════════════════════════════════════════════
    # Logs
    # ══════════════════════════════════════════════════════════════════════

    async def list_logs(
        self,
        pool: ConnectionPool,
        user_id: int,
        habit_id: int,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        """Logs for one habit, oldest first, optionally bounded (inclusive)."""
        await self.get_habit(pool, user_id, habit_id)

        clauses = ["habit_id = ?"]
        params: List[Any] = [habit_id]
        if from_date is not None:
            clauses.append("date >= ?")
            params.append(_iso(from_date))
        if to_date is not None:
            clauses.append("date <= ?")
            params.append(_iso(to_date))

        return await db_utils.query(
            pool,
            f"SELECT {LOG_COLUMNS} FROM habit_logs WHERE {' AND '.join(clauses)} ORDER BY date",
            params,
        )

    async def upsert_log(
        self,
        pool: ConnectionPool,
        user_id: int,
        habit_id: int,
        day: date,
        data: HabitLogUpsert,
    ) -> Dict[str, Any]:
        await self.get_habit(pool, user_id, habit_id)

        async def write(db: aiosqlite.Connection) -> Dict[str, Any]:
            await db.execute(
                "INSERT INTO habit_logs (habit_id, date, completed, notes) VALUES (?, ?, ?, ?) "
                "ON CONFLICT(habit_id, date) DO UPDATE SET "
                "completed = excluded.completed, notes = excluded.notes, "
                "updated_at = CURRENT_TIMESTAMP",
                (habit_id, _iso(day), int(data.completed), data.notes),
            )
            async with db.execute(
                f"SELECT {LOG_COLUMNS} FROM habit_logs WHERE habit_id = ? AND date = ?",
                (habit_id, _iso(day)),
            ) as cursor:
                row = await cursor.fetchone()
            return dict(row)

        return await db_utils.transaction(pool, write)

    async def delete_log(
        self, pool: ConnectionPool, user_id: int, habit_id: int, day: date
    ) -> None:
        await self.get_habit(pool, user_id, habit_id)
        removed = await db_utils.remove(
            pool,
            "DELETE FROM habit_logs WHERE habit_id = ? AND date = ?",
            (habit_id, _iso(day)),
        )
        if removed == 0:
            raise NotFoundError(resource="habit log", resource_id=_iso(day))


habit_service = HabitService()
