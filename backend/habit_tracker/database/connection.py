"""
Habit Tracker Backend - Connection Factory
==========================================

What:  Opens one physical SQLite connection (aiosqlite) and applies the
       session settings every pooled connection needs.
Who:   Called by ConnectionPool at warm-up and when it grows an overflow
       connection. Nothing else opens connections.

Session settings:
    Always:
        PRAGMA foreign_keys = ON      ON DELETE CASCADE from users → habits → logs
        PRAGMA busy_timeout = 5000    a writer waits up to 5s on a lock instead
                                      of failing with SQLITE_BUSY
    Production only:
        PRAGMA journal_mode = WAL     readers don't block the writer
        PRAGMA synchronous = NORMAL   fsync at checkpoints, not every commit

In-memory databases:
    A plain ":memory:" connection is private to itself, so a pool of them would
    be N unrelated databases. The factory maps ":memory:" to a named
    shared-cache URI (one name per factory) so every connection it opens sees
    the same database. The database disappears when its last connection closes.

Failure policy:
    Any error while opening or configuring is raised as DatabaseConnectionError
    chained to the driver error. A half-configured handle is closed first.
    There is no retry here; the caller decides.
"""

import logging
import sqlite3
import uuid
from pathlib import Path
from typing import Optional, Tuple

import aiosqlite

from habit_tracker.config import MEMORY_DATABASE, Settings
from habit_tracker.exceptions import DatabaseConnectionError

logger = logging.getLogger(__name__)


class ConnectionFactory:
    """
    Creates configured aiosqlite connections for one database location.

    Args:
        database:        File path, or MEMORY_DATABASE for an in-memory instance
        production:      Apply WAL journaling and synchronous=NORMAL
        busy_timeout_ms: Lock wait applied to every connection
    """

    def __init__(
        self,
        database: str,
        production: bool = False,
        busy_timeout_ms: int = 5000,
    ):
        self.database = database
        self.production = production
        self.busy_timeout_ms = busy_timeout_ms
        # Unique per factory so independent pools (e.g. in tests) never share data
        self._memory_name = f"habit-tracker-{uuid.uuid4().hex}"

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConnectionFactory":
        return cls(
            database=settings.resolved_db_path,
            production=settings.is_production,
            busy_timeout_ms=settings.db_busy_timeout_ms,
        )

    @property
    def is_memory(self) -> bool:
        return self.database == MEMORY_DATABASE

    def _target(self) -> Tuple[str, bool]:
        """Return (database argument, uri flag) for sqlite3.connect."""
        if self.is_memory:
            return f"file:{self._memory_name}?mode=memory&cache=shared", True
        return str(Path(self.database).resolve()), False

    async def create_connection(self) -> aiosqlite.Connection:
        """
        Open and configure a new connection.

        Returns:
            An aiosqlite connection in autocommit mode with aiosqlite.Row rows.

        Raises:
            DatabaseConnectionError: open or any PRAGMA failed.
        """
        target, uri = self._target()
        conn: Optional[aiosqlite.Connection] = None
        try:
            # isolation_level=None: autocommit; transactions are explicit BEGIN/COMMIT
            conn = await aiosqlite.connect(target, uri=uri, isolation_level=None)
            conn.row_factory = aiosqlite.Row

            await conn.execute("PRAGMA foreign_keys = ON")
            await conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout_ms)}")

            if self.production:
                await conn.execute("PRAGMA journal_mode = WAL")
                await conn.execute("PRAGMA synchronous = NORMAL")

            return conn
        except (sqlite3.Error, OSError, ValueError) as e:
            logger.error("Database connection error (%s): %s", self.database, e)
            if conn is not None:
                try:
                    await conn.close()
                except Exception:
                    logger.debug("Ignoring close failure on half-open connection", exc_info=True)
            raise DatabaseConnectionError(
                message=f"Failed to connect to database: {e}",
                context={"database": self.database},
            ) from e
