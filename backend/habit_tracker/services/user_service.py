"""
Habit Tracker Backend - User Service
====================================

What:  Registration, credential checks and lookups for the users table.
How:   Plain SQL through the query helpers on the pool passed to each call.
Who:   Auth routes.

Rows are returned as dicts without the password column; only authenticate()
reads the hash, and it never leaves this module.
"""

import logging
from typing import Any, Dict

from habit_tracker.database.pool import ConnectionPool
from habit_tracker.exceptions import (
    ConflictError,
    ConstraintViolationError,
    NotFoundError,
    UnauthorizedError,
)
from habit_tracker.models.user import ROLE_USER
from habit_tracker.services.auth_service import hash_password, verify_password
from habit_tracker.utils import db_utils

logger = logging.getLogger(__name__)

PUBLIC_COLUMNS = "id, username, email, role, created_at, updated_at"


class UserService:
    async def create_user(
        self,
        pool: ConnectionPool,
        username: str,
        email: str,
        password: str,
        role: str = ROLE_USER,
    ) -> Dict[str, Any]:
        """
        Insert a new user with a hashed password.

        Raises:
            ConflictError: username or email is already registered.
        """
        existing = await db_utils.query_one(
            pool,
            "SELECT id FROM users WHERE username = ? OR email = ?",
            (username, email),
        )
        if existing is not None:
            raise ConflictError("Username or email is already registered")

        try:
            user_id = await db_utils.insert(
                pool,
                "INSERT INTO users (username, email, password, role) VALUES (?, ?, ?, ?)",
                (username, email, hash_password(password), role),
            )
        except ConstraintViolationError as e:
            # Lost a race with a concurrent registration for the same name
            raise ConflictError("Username or email is already registered") from e

        logger.info("Registered user %d (%s)", user_id, username)
        return await self.get_user(pool, user_id)

    async def authenticate(self, pool: ConnectionPool, email: str, password: str) -> Dict[str, Any]:
        """
        Return the user for valid credentials.

        Raises:
            UnauthorizedError: unknown email or wrong password (same message
                for both, so the response doesn't reveal which emails exist).
        """
        row = await db_utils.query_one(
            pool,
            f"SELECT {PUBLIC_COLUMNS}, password FROM users WHERE email = ?",
            (email,),
        )
        if row is None or not verify_password(password, row.pop("password")):
            raise UnauthorizedError("Invalid email or password")
        return row

    async def get_user(self, pool: ConnectionPool, user_id: int) -> Dict[str, Any]:
        row = await db_utils.query_one(
            pool, f"SELECT {PUBLIC_COLUMNS} FROM users WHERE id = ?", (user_id,)
        )
        if row is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return row


user_service = UserService()
