"""
Habit Tracker Backend - Table Definitions
=========================================

What:  SQLAlchemy Core tables describing the persistent schema.
How:   Tables register on one shared MetaData; the schema manager compiles
       them to SQLite DDL and runs it through the connection pool.
       Queries themselves are plain parameterized SQL (see utils/db_utils.py).

Table order in `metadata.sorted_tables` follows foreign keys:
    users → habits → habit_logs
"""

from habit_tracker.models.base import metadata
from habit_tracker.models.habit import habit_logs, habits
from habit_tracker.models.user import users

__all__ = ["metadata", "users", "habits", "habit_logs"]
