# Database package init
"""
Habit Tracker Backend - Database Layer
======================================

    connection.py   ConnectionFactory: opens one configured aiosqlite connection
    pool.py         ConnectionPool: registry, overflow, idle reaper, façade
    schema.py       DDL for users / habits / habit_logs issued through the pool
"""

from habit_tracker.database.connection import ConnectionFactory
from habit_tracker.database.pool import (
    ConnectionPool,
    PooledConnection,
    PoolStats,
    close_all_connections,
    initialize_connection_pool,
    with_connection,
)

__all__ = [
    "ConnectionFactory",
    "ConnectionPool",
    "PooledConnection",
    "PoolStats",
    "close_all_connections",
    "initialize_connection_pool",
    "with_connection",
]
