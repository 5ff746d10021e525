"""
Habit Tracker Backend - Auth Service
====================================

What:  Password hashing and access-token issue/verification.
How:   passlib CryptContext for hashes, python-jose for HS256 JWTs.
Who:   user_service (hash/verify), the auth routes (issue) and the
       get_current_user dependency (verify).

Token claims:
    sub       user ID (string, as RFC 7519 requires)
    username
    email
    roles     list of role names, checked by require_roles()
    exp       expiry, JWT_EXPIRES_MINUTES after issue

Hash scheme:
    pbkdf2_sha256 is pure-python in passlib, so there is no native backend to
    install. Hashes carry their scheme, so adding a scheme ahead of it in the
    context later re-hashes on next login via `deprecated="auto"`.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from habit_tracker.config import Settings
from habit_tracker.exceptions import UnauthorizedError
from habit_tracker.schemas.user import CurrentUser

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


class AuthService:
    """
    Token issue and verification bound to one app's settings.

    create_app() builds one per app (app.state.auth_service); handlers get it
    through the get_auth_service dependency.

    Args:
        settings: Source of the JWT secret, algorithm and lifetime
    """

    def __init__(self, settings: Settings):
        self._settings = settings

    # ── Passwords ─────────────────────────────────────────────────────────

    def hash_password(self, password: str) -> str:
        return hash_password(password)

    def verify_password(self, password: str, password_hash: str) -> bool:
        return verify_password(password, password_hash)

    # ── Tokens ────────────────────────────────────────────────────────────

    def create_access_token(
        self, user: Dict[str, Any], expires_delta: Optional[timedelta] = None
    ) -> str:
        """
        Issue a signed token for a user row (or any mapping with the same keys).

        `roles` is taken from the row's `roles` list when present, otherwise
        from its single `role` column.
        """
        if expires_delta is None:
            expires_delta = timedelta(minutes=self._settings.jwt_expires_minutes)

        roles = user.get("roles") or [user.get("role") or "user"]
        payload = {
            "sub": str(user["id"]),
            "username": user["username"],
            "email": user["email"],
            "roles": list(roles),
            "exp": datetime.now(timezone.utc) + expires_delta,
        }
        return jwt.encode(payload, self._secret(), algorithm=self._settings.jwt_algorithm)

    def decode_token(self, token: str) -> CurrentUser:
        """
        Verify a token and return the identity it carries.

        Raises:
            UnauthorizedError: "Authentication token expired" past `exp`,
                "Invalid authentication token" for anything else.
        """
        try:
            claims = jwt.decode(
                token, self._secret(), algorithms=[self._settings.jwt_algorithm]
            )
        except ExpiredSignatureError as e:
            raise UnauthorizedError("Authentication token expired") from e
        except JWTError as e:
            logger.debug("Rejected access token: %s", e)
            raise UnauthorizedError("Invalid authentication token") from e

        try:
            return CurrentUser(
                id=int(claims["sub"]),
                username=claims["username"],
                email=claims["email"],
                roles=claims.get("roles") or [],
            )
        except (KeyError, TypeError, ValueError) as e:
            raise UnauthorizedError("Invalid authentication token") from e

    def ensure_configured(self) -> None:
        """Raise UnauthorizedError now if no token could be signed."""
        self._secret()

    def _secret(self) -> str:
        if not self._settings.jwt_secret:
            raise UnauthorizedError(
                "Authentication is not configured",
                context={"missing": "JWT_SECRET"},
            )
        return self._settings.jwt_secret

