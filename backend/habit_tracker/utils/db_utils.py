"""
Habit Tracker Backend - Query Helpers
=====================================

What:  One-call helpers for the common statement shapes, each running on a
       connection borrowed through ConnectionPool.with_connection().
Who:   Services (user_service, habit_service) and the health route.

Helpers:
    query(pool, sql, params)        → list of row dicts
    query_one(pool, sql, params)    → row dict or None
    insert(pool, sql, params)       → lastrowid
    update / remove(pool, sql, ...) → rowcount
    transaction(pool, operations)   → BEGIN / operations(conn) / COMMIT,
                                      ROLLBACK + TransactionError on failure

Error policy:
    Every failure leaves as a DatabaseError subclass, with the driver error
    chained as __cause__ and the SQL text in `context` (logged, never returned
    to the client):

        sqlite3.IntegrityError          → ConstraintViolationError (HTTP 400)
        pool errors (already Database*) → propagated unchanged
        anything else                   → DatabaseError("<action> failed: ...")

Parameters use SQLite placeholders: `?` with a sequence, or `:name` with a dict.
"""

import logging
import sqlite3
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar, Union

import aiosqlite

from habit_tracker.database.pool import ConnectionPool
from habit_tracker.exceptions import (
    ConstraintViolationError,
    DatabaseError,
    TransactionError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
Params = Union[Sequence[Any], Mapping[str, Any]]


def _wrap(error: Exception, action: str, sql: Optional[str] = None) -> DatabaseError:
    context = {"error_type": type(error).__name__}
    if sql is not None:
        context["sql"] = " ".join(sql.split())
    if isinstance(error, sqlite3.IntegrityError):
        return ConstraintViolationError(context={**context, "detail": str(error)})
    return DatabaseError(message=f"{action} failed: {error}", context=context)


async def query(pool: ConnectionPool, sql: str, params: Params = ()) -> List[Dict[str, Any]]:
    """Execute a query and return all rows as dicts."""
    try:
        rows = await pool.with_connection(lambda db: db.execute_fetchall(sql, params))
    except DatabaseError:
        raise
    except Exception as e:
        logger.error("Database query error: %s", e)
        raise _wrap(e, "Query", sql) from e
    return [dict(row) for row in rows]


async def query_one(
    pool: ConnectionPool, sql: str, params: Params = ()
) -> Optional[Dict[str, Any]]:
    """Execute a query and return the first row, or None."""

    async def fetch(db: aiosqlite.Connection) -> Optional[aiosqlite.Row]:
        async with db.execute(sql, params) as cursor:
            return await cursor.fetchone()

    try:
        row = await pool.with_connection(fetch)
    except DatabaseError:
        raise
    except Exception as e:
        logger.error("Database query error: %s", e)
        raise _wrap(e, "Query", sql) from e
    return dict(row) if row is not None else None


async def insert(pool: ConnectionPool, sql: str, params: Params = ()) -> int:
    """Execute an INSERT and return the new row's ID."""

    async def run(db: aiosqlite.Connection) -> int:
        async with db.execute(sql, params) as cursor:
            return cursor.lastrowid

    try:
        return await pool.with_connection(run)
    except DatabaseError:
        raise
    except Exception as e:
        logger.error("Database insert error: %s", e)
        raise _wrap(e, "Insert", sql) from e


async def _execute_rowcount(pool: ConnectionPool, sql: str, params: Params) -> int:
    async def run(db: aiosqlite.Connection) -> int:
        async with db.execute(sql, params) as cursor:
            return cursor.rowcount

    return await pool.with_connection(run)


async def update(pool: ConnectionPool, sql: str, params: Params = ()) -> int:
    """Execute an UPDATE and return the number of affected rows."""
    try:
        return await _execute_rowcount(pool, sql, params)
    except DatabaseError:
        raise
    except Exception as e:
        logger.error("Database update error: %s", e)
        raise _wrap(e, "Update", sql) from e


async def remove(pool: ConnectionPool, sql: str, params: Params = ()) -> int:
    """Execute a DELETE and return the number of affected rows."""
    try:
        return await _execute_rowcount(pool, sql, params)
    except DatabaseError:
        raise
    except Exception as e:
        logger.error("Database delete error: %s", e)
        raise _wrap(e, "Delete", sql) from e


async def transaction(
    pool: ConnectionPool,
    operations: Callable[[aiosqlite.Connection], Awaitable[T]],
) -> T:
    """
    Run `operations(conn)` inside BEGIN / COMMIT on one borrowed connection.

    On any failure, including a failed COMMIT, the transaction is rolled back
    and TransactionError is raised with the original error as __cause__.
    A cancelled batch is rolled back too, then the cancellation continues, so
    the connection never returns to the pool with a transaction open.
    """

    async def run(db: aiosqlite.Connection) -> T:
        await db.execute("BEGIN")
        try:
            result = await operations(db)
            await db.execute("COMMIT")
            return result
        except BaseException as e:
            await _rollback(db)
            if isinstance(e, Exception):
                logger.error("Transaction error: %s", e)
                raise TransactionError(
                    message=f"Transaction failed: {e}",
                    context={"error_type": type(e).__name__},
                ) from e
            raise

    return await pool.with_connection(run)


async def _rollback(db: aiosqlite.Connection) -> None:
    try:
        await db.execute("ROLLBACK")
    except sqlite3.Error as e:
        # "no transaction is active" after SQLite already rolled back on its own
        logger.warning("Rollback failed: %s", e)
