"""
Habit Tracker Backend - users table
===================================

    id          INTEGER PRIMARY KEY AUTOINCREMENT
    username    unique login handle
    email       unique, used for login
    password    passlib hash (never the plaintext)
    role        'user' or 'admin'; issued as the token's `roles` claim
"""

from sqlalchemy import Column, Integer, String, Table, Text, text

from habit_tracker.models.base import metadata, timestamp_columns

ROLE_USER = "user"
ROLE_ADMIN = "admin"

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("username", String(50), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password", Text, nullable=False),
    Column("role", String(20), nullable=False, server_default=text(f"'{ROLE_USER}'")),
    *timestamp_columns(),
    sqlite_autoincrement=True,
)
