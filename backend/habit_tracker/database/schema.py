"""
Habit Tracker Backend - Schema Manager
======================================

What:  Creates (and, in tests, drops and re-creates) the users / habits /
       habit_logs tables and their indexes.
How:   The tables are declared once as SQLAlchemy Core `Table` objects in
       habit_tracker.models. Their DDL is compiled for the SQLite dialect and
       executed on a pooled aiosqlite connection; SQLAlchemy never opens a
       connection of its own.
When:  initialize_schema() runs in the lifespan handler right after pool
       warm-up. Every statement is IF NOT EXISTS, so it is safe on every start.
"""

import logging
import sqlite3
from typing import List

from sqlalchemy.dialects import sqlite
from sqlalchemy.schema import CreateIndex, CreateTable, DropTable

from habit_tracker.config import Settings
from habit_tracker.database.pool import ConnectionPool
from habit_tracker.exceptions import DatabaseError
from habit_tracker.models import metadata

logger = logging.getLogger(__name__)

_dialect = sqlite.dialect()


def create_statements() -> List[str]:
    """CREATE TABLE / CREATE INDEX statements in foreign-key dependency order."""
    statements = []
    for table in metadata.sorted_tables:
        statements.append(str(CreateTable(table, if_not_exists=True).compile(dialect=_dialect)))
        for index in sorted(table.indexes, key=lambda i: i.name):
            statements.append(
                str(CreateIndex(index, if_not_exists=True).compile(dialect=_dialect))
            )
    return statements


def drop_statements() -> List[str]:
    """DROP TABLE statements, dependents first (indexes go with their tables)."""
    return [
        str(DropTable(table, if_exists=True).compile(dialect=_dialect))
        for table in reversed(metadata.sorted_tables)
    ]


async def _execute_all(pool: ConnectionPool, statements: List[str]) -> None:
    async with pool.connection() as db:
        for statement in statements:
            await db.execute(statement)


async def initialize_schema(pool: ConnectionPool) -> None:
    """
    Create every table and index that does not exist yet.

    Raises:
        DatabaseError: a DDL statement failed (pool errors propagate as-is).
    """
    try:
        await _execute_all(pool, create_statements())
    except sqlite3.Error as e:
        logger.error("Error initializing database schema: %s", e)
        raise DatabaseError(message=f"Schema initialization failed: {e}") from e
    logger.info("Database schema initialized")


async def reset_database(pool: ConnectionPool, settings: Settings) -> None:
    """
    Drop all tables and re-create them. Test environment only.

    Raises:
        DatabaseError: called outside the test environment, or a statement failed.
    """
    if settings.environment != "test":
        raise DatabaseError(
            message="Database reset is only allowed in the test environment",
            context={"environment": settings.environment},
        )

    try:
        await _execute_all(pool, drop_statements())
    except sqlite3.Error as e:
        logger.error("Error resetting database: %s", e)
        raise DatabaseError(message=f"Database reset failed: {e}") from e

    await initialize_schema(pool)
    logger.info("Database reset")
