"""
Habit Tracker Backend - FastAPI Dependencies
============================================

    get_pool           the app's ConnectionPool (app.state.pool)
    get_settings       the Settings the app was built with (app.state.settings)
    get_auth_service   the app's AuthService (app.state.auth_service)
    get_current_user   identity from the `Authorization: Bearer` header
    require_roles      403 unless the identity holds one of the given roles

Usage:
    @router.get("/admin/pool")
    async def pool_stats(
        user: CurrentUser = Depends(require_roles(ROLE_ADMIN)),
        pool: ConnectionPool = Depends(get_pool),
    ): ...
"""

from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from habit_tracker.config import Settings
from habit_tracker.database.pool import ConnectionPool
from habit_tracker.exceptions import ForbiddenError, UnauthorizedError
from habit_tracker.schemas.user import CurrentUser
from habit_tracker.services.auth_service import AuthService

# auto_error=False: a missing header reaches get_current_user as None and gets
# our 401 body instead of FastAPI's default 403
_bearer = HTTPBearer(auto_error=False)


def get_pool(request: Request) -> ConnectionPool:
    return request.app.state.pool


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    auth: AuthService = Depends(get_auth_service),
) -> CurrentUser:
    """
    Raises:
        UnauthorizedError: no bearer token, or it is expired or invalid.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Authentication token is required")
    return auth.decode_token(credentials.credentials)


def require_roles(*roles: str) -> Callable:
    """
    Build a dependency that authenticates and then checks roles.

    With no roles given, any authenticated user passes.
    """

    async def check_roles(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if roles and not set(roles) & set(user.roles):
            raise ForbiddenError(
                "Insufficient permissions",
                context={"required": list(roles)},
            )
        return user

    return check_roles
