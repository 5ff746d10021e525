"""
Habit Tracker Backend - habits and habit_logs tables
====================================================

habits:
    One row per habit definition. `frequency` is one of daily / weekly /
    monthly; `end_date` is optional (open-ended habit).

habit_logs:
    One row per habit per calendar day. UNIQUE(habit_id, date) makes
    "mark day X done" an upsert rather than a duplicate insert.

Both foreign keys cascade on delete: removing a user removes their habits,
removing a habit removes its logs. This depends on PRAGMA foreign_keys = ON,
which the connection factory sets on every connection.

Indexes:
    idx_habits_user_id        list a user's habits
    idx_habit_logs_habit_id   list a habit's logs
    idx_habit_logs_date       date-range filters
"""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    text,
)

from habit_tracker.models.base import metadata, timestamp_columns

FREQUENCIES = ("daily", "weekly", "monthly")

habits = Table(
    "habits",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("name", String(100), nullable=False),
    Column("description", Text),
    Column("frequency", String(20), nullable=False),
    Column("start_date", Date, nullable=False),
    Column("end_date", Date),
    *timestamp_columns(),
    Index("idx_habits_user_id", "user_id"),
    sqlite_autoincrement=True,
)

habit_logs = Table(
    "habit_logs",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("habit_id", Integer, ForeignKey("habits.id", ondelete="CASCADE"), nullable=False),
    Column("date", Date, nullable=False),
    Column("completed", Boolean, nullable=False, server_default=text("0")),
    Column("notes", Text),
    *timestamp_columns(),
    UniqueConstraint("habit_id", "date"),
    Index("idx_habit_logs_habit_id", "habit_id"),
    Index("idx_habit_logs_date", "date"),
    sqlite_autoincrement=True,
)
