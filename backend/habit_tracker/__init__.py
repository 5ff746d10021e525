"""
Habit Tracker Backend - Application Package Initializer
=======================================================

What: Marks the `habit_tracker` directory as a Python package.
Who:  Used by uvicorn (`habit_tracker.main:app`), pytest, and `python -m habit_tracker`.

Architecture Note:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← users, habits, tokens
    ├─────────────────────────────────────┤
    │     Query helpers (utils/db_utils)  │  ← DatabaseError wrapping
    ├─────────────────────────────────────┤
    │   Connection pool (database/pool)   │  ← borrow / release / reap
    ├─────────────────────────────────────┤
    │ Connection factory (database/conn.) │  ← aiosqlite + PRAGMAs
    └─────────────────────────────────────┘

    Every layer above the pool reaches the database only through
    `ConnectionPool.with_connection()` (or its `connection()` context manager),
    which guarantees the borrowed connection is released on every exit path.
"""

__version__ = "1.0.0"
