"""
Habit Tracker Backend - Database Connection Pool
================================================

What:  A pool of pre-warmed SQLite connections that grows on demand,
       shrinks back when load drops, and lends connections only through a
       scoped "borrow, run, release" contract.
Who:   Owned by the FastAPI app (app.state.pool); used by the query helpers,
       the schema manager, the health route and the test suite.
When:  Warmed up in the lifespan handler, closed on shutdown.

Registry:
    An ordered list of PooledConnection entries. Base entries (the first N,
    opened at warm-up) are permanent. Overflow entries are opened when every
    entry is borrowed and disappear again through one of two paths:

    1. Eager shrink-back: releasing an overflow entry while more than N
       entries are idle closes it immediately.
    2. Idle reaper: an asyncio task ticking every T seconds closes overflow
       entries idle for longer than T.

    Base entries are never reaped; N is a floor.

Concurrency model:
    Single event loop, no threads touch the registry. Every bookkeeping step
    (flip in_use, stamp last_used_at, append, remove) runs synchronously
    between awaits, so no coroutine ever observes a half-updated entry.
    Entries leave the registry *before* their handle is closed, so a handle
    that is being closed can never be handed out. The only lock serializes
    warm-up, which spans several awaits.

Overload policy:
    acquire never waits for a release. When nothing is idle it opens another
    connection. With max_overflow=None (the default) growth is unbounded under
    sustained contention; setting DB_MAX_OVERFLOW caps it and acquire raises
    PoolExhaustedError at the cap.

Usage:
    pool = ConnectionPool.from_settings(settings)
    await pool.initialize()

    rows = await pool.with_connection(
        lambda conn: conn.execute_fetchall("SELECT * FROM habits")
    )

    async with pool.connection() as conn:
        await conn.execute("DELETE FROM habit_logs WHERE id = ?", (log_id,))

    await pool.close_all()
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, List, Optional, TypeVar

import aiosqlite

from habit_tracker.config import Settings
from habit_tracker.database.connection import ConnectionFactory
from habit_tracker.exceptions import (
    DatabaseError,
    PoolExhaustedError,
    PoolInitError,
    PoolShutdownError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

Work = Callable[[aiosqlite.Connection], Awaitable[T]]


@dataclass(eq=False)
class PooledConnection:
    """One registry entry. `handle` belongs to exactly one entry at a time."""

    handle: aiosqlite.Connection
    in_use: bool
    last_used_at: float
    is_overflow: bool = False


@dataclass(frozen=True)
class PoolStats:
    """Read-only snapshot reported by /api/health and /api/admin/pool."""

    initialized: bool
    size: int
    in_use: int
    idle: int
    overflow: int
    base_size: int


class ConnectionPool:
    """
    Registry of pooled connections plus the reaper task that trims it.

    Args:
        factory:       Opens and configures physical connections
        size:          Base pool size N
        idle_timeout:  Seconds T an overflow entry may stay idle; also the
                       reaper tick interval
        max_overflow:  Cap on overflow entries, or None for unbounded growth
        clock:         Monotonic time source (swappable in tests)
    """

    def __init__(
        self,
        factory: ConnectionFactory,
        size: int = 5,
        idle_timeout: float = 30.0,
        max_overflow: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if size < 1:
            raise ValueError("Pool size must be at least 1")
        if idle_timeout <= 0:
            raise ValueError("Idle timeout must be positive")

        self.factory = factory
        self.size = size
        self.idle_timeout = idle_timeout
        self.max_overflow = max_overflow
        self._clock = clock

        self._entries: List[PooledConnection] = []
        self._initialized = False
        # Bumped by close_all(); an open that spans a shutdown sees a new value
        self._generation = 0
        self._init_lock = asyncio.Lock()
        self._reaper_task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConnectionPool":
        return cls(
            factory=ConnectionFactory.from_settings(settings),
            size=settings.db_pool_size,
            idle_timeout=settings.db_idle_timeout,
            max_overflow=settings.db_max_overflow,
        )

    # ── Introspection ─────────────────────────────────────────────────────

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def entries(self) -> List[PooledConnection]:
        """A copy of the registry, in hand-out order."""
        return list(self._entries)

    @property
    def reaper_task(self) -> Optional[asyncio.Task]:
        return self._reaper_task

    def _idle_count(self) -> int:
        return sum(1 for entry in self._entries if not entry.in_use)

    def _overflow_count(self) -> int:
        return sum(1 for entry in self._entries if entry.is_overflow)

    def stats(self) -> PoolStats:
        idle = self._idle_count()
        return PoolStats(
            initialized=self._initialized,
            size=len(self._entries),
            in_use=len(self._entries) - idle,
            idle=idle,
            overflow=self._overflow_count(),
            base_size=self.size,
        )

    # ══════════════════════════════════════════════════════════════════════
    # Lifecycle
    # ══════════════════════════════════════════════════════════════════════

    async def initialize(self) -> None:
        """
        Open the N base connections and start the idle reaper.

        Idempotent: a second call (or a concurrent first call) returns without
        opening anything. On failure the connections opened so far are closed,
        the registry stays empty and the pool stays uninitialized, so a later
        call can retry from scratch.

        Raises:
            PoolInitError: a base connection could not be created.
        """
        if self._initialized:
            return

        async with self._init_lock:
            if self._initialized:
                return

            generation = self._generation
            created: List[aiosqlite.Connection] = []
            try:
                for _ in range(self.size):
                    created.append(await self.factory.create_connection())
            except Exception as e:
                logger.error("Failed to initialize connection pool: %s", e)
                for handle in created:
                    await self._close_handle(handle)
                raise PoolInitError(
                    context={"created": len(created), "requested": self.size}
                ) from e

            if generation != self._generation:
                logger.warning("Connection pool closed during initialization")
                for handle in created:
                    await self._close_handle(handle)
                raise PoolInitError(
                    "Connection pool was closed during initialization",
                    context={"created": len(created), "requested": self.size},
                )

            now = self._clock()
            stray, self._entries = self._entries, [
                PooledConnection(handle=handle, in_use=False, last_used_at=now)
                for handle in created
            ]
            self._start_reaper()
            self._initialized = True
            logger.info("Database connection pool initialized with %d connections", self.size)

            for entry in stray:
                await self._close_handle(entry.handle)

    async def close_all(self) -> None:
        """
        Stop the reaper and close every connection, borrowed or not.

        Individual close failures are logged and skipped. Afterwards the
        registry is empty and initialize() may be called again, even when
        stopping the reaper failed. An overflow connection still being opened
        is closed by its borrower once the open completes.

        Raises:
            PoolShutdownError: the teardown itself failed (not a single close).
        """
        self._generation += 1
        entries, self._entries = self._entries, []
        self._initialized = False

        try:
            try:
                await self._stop_reaper()
            finally:
                await asyncio.gather(*(self._close_handle(entry.handle) for entry in entries))
            logger.info("All database connections closed (%d)", len(entries))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Error closing database connections: %s", e)
            raise PoolShutdownError() from e

    # ══════════════════════════════════════════════════════════════════════
    # Borrow / release
    # ══════════════════════════════════════════════════════════════════════

    async def _acquire(self) -> aiosqlite.Connection:
        """
        Borrow a connection: first idle entry in registry order, else a new
        overflow connection. Only the façade below should call this.

        Raises:
            PoolInitError: lazy warm-up failed.
            PoolExhaustedError: nothing idle and max_overflow reached.
            DatabaseConnectionError: the overflow connection could not be opened.
            DatabaseError: close_all() ran while the overflow connection was opening.
        """
        if not self._initialized:
            await self.initialize()

        for entry in self._entries:
            if not entry.in_use:
                entry.in_use = True
                entry.last_used_at = self._clock()
                return entry.handle

        if self.max_overflow is not None and self._overflow_count() >= self.max_overflow:
            raise PoolExhaustedError(
                context={"size": self.size, "max_overflow": self.max_overflow}
            )

        logger.warning(
            "Connection pool exhausted (%d in use), creating additional connection",
            len(self._entries),
        )
        generation = self._generation
        handle = await self.factory.create_connection()
        if generation != self._generation:
            await self._close_handle(handle)
            raise DatabaseError(
                "Connection pool was closed while a connection was being opened",
                context={"size": self.size},
            )
        self._entries.append(
            PooledConnection(
                handle=handle,
                in_use=True,
                last_used_at=self._clock(),
                is_overflow=True,
            )
        )
        return handle

    async def _release(self, handle: aiosqlite.Connection) -> None:
        """
        Return a borrowed connection.

        A handle the registry doesn't know (already released and shrunk away,
        or closed by close_all) is ignored: cleanup paths may release twice.
        """
        entry = next((e for e in self._entries if e.handle is handle), None)
        if entry is None:
            return

        entry.in_use = False
        entry.last_used_at = self._clock()

        if entry.is_overflow and self._idle_count() > self.size:
            self._entries.remove(entry)
            logger.debug("Closing surplus overflow connection (pool size now %d)", len(self._entries))
            await self._close_handle(handle)

    # ══════════════════════════════════════════════════════════════════════
    # Scoped-execution façade
    # ══════════════════════════════════════════════════════════════════════

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Borrow a connection for the duration of an `async with` block.

        The connection is released exactly once when the block exits, whether
        it returns, raises, or is cancelled. Exceptions pass through untouched.
        """
        handle = await self._acquire()
        try:
            yield handle
        finally:
            await self._release(handle)

    async def with_connection(self, work: Work[T]) -> T:
        """
        Run `work(conn)` with a borrowed connection and return its result.

        Example:
            user = await pool.with_connection(
                lambda db: db.execute_fetchall("SELECT * FROM users WHERE id = ?", (1,))
            )
        """
        async with self.connection() as handle:
            return await work(handle)

    # ══════════════════════════════════════════════════════════════════════
    # Idle reaper
    # ══════════════════════════════════════════════════════════════════════

    def _start_reaper(self) -> None:
        if self._reaper_task is not None and not self._reaper_task.done():
            self._reaper_task.cancel()
        self._reaper_task = asyncio.create_task(self._reap_forever(), name="pool-idle-reaper")

    async def _stop_reaper(self) -> None:
        task, self._reaper_task = self._reaper_task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _reap_forever(self) -> None:
        # Runs until cancelled by close_all(); an asyncio task does not keep
        # the process alive once the event loop stops.
        while True:
            await asyncio.sleep(self.idle_timeout)
            try:
                await self.reap_idle_connections()
            except Exception:
                logger.exception("Idle connection reaper tick failed")

    async def reap_idle_connections(self) -> int:
        """
        Close overflow connections idle for longer than the idle timeout.

        Returns:
            Number of connections removed from the registry.
        """
        now = self._clock()
        expired = [
            entry
            for entry in self._entries
            if not entry.in_use
            and entry.is_overflow
            and now - entry.last_used_at > self.idle_timeout
        ]
        if not expired:
            return 0

        self._entries = [entry for entry in self._entries if entry not in expired]
        for entry in expired:
            await self._close_handle(entry.handle)

        logger.info(
            "Reaped %d idle overflow connection(s); pool size now %d",
            len(expired),
            len(self._entries),
        )
        return len(expired)

    # ── Helpers ───────────────────────────────────────────────────────────

    @staticmethod
    async def _close_handle(handle: aiosqlite.Connection) -> None:
        """Close one physical connection; failures are logged, never raised."""
        try:
            await handle.close()
        except Exception as e:
            logger.error("Error closing connection: %s", e)


# ══════════════════════════════════════════════════════════════════════════
# Module-level entry points
# ══════════════════════════════════════════════════════════════════════════
# Thin wrappers for callers (scripts, test harnesses) that prefer functions.


async def initialize_connection_pool(pool: ConnectionPool) -> None:
    await pool.initialize()


async def with_connection(pool: ConnectionPool, work: Work[T]) -> T:
    return await pool.with_connection(work)


async def close_all_connections(pool: ConnectionPool) -> None:
    await pool.close_all()


__all__ = [
    "ConnectionPool",
    "PooledConnection",
    "PoolStats",
    "initialize_connection_pool",
    "with_connection",
    "close_all_connections",
]
