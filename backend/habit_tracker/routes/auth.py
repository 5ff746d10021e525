"""
Habit Tracker Backend - Auth Routes
===================================

    POST /api/auth/register   create an account, returns user + token (201)
    POST /api/auth/login      email + password, returns user + token
    GET  /api/auth/me         the authenticated user
    POST /api/auth/refresh    a fresh token for the authenticated user
"""

import logging

from fastapi import APIRouter, Depends, status

from habit_tracker.database.pool import ConnectionPool
from habit_tracker.dependencies import get_auth_service, get_current_user, get_pool
from habit_tracker.schemas.common import ErrorResponse
from habit_tracker.schemas.user import (
    AuthResponse,
    CurrentUser,
    TokenResponse,
    UserCreate,
    UserInfoResponse,
    UserLogin,
    UserResponse,
)
from habit_tracker.services.auth_service import AuthService
from habit_tracker.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Register a new user",
)
async def register(
    body: UserCreate,
    pool: ConnectionPool = Depends(get_pool),
    auth: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    # No account is created when tokens cannot be signed
    auth.ensure_configured()
    user = await user_service.create_user(pool, body.username, body.email, body.password)
    return AuthResponse(
        message="User registered successfully",
        user=UserResponse.from_row(user),
        token=auth.create_access_token(user),
    )


@router.post(
    "/login",
    response_model=AuthResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Log in with email and password",
)
async def login(
    body: UserLogin,
    pool: ConnectionPool = Depends(get_pool),
    auth: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    user = await user_service.authenticate(pool, body.email, body.password)
    logger.info("User %d logged in", user["id"])
    return AuthResponse(
        message="Login successful",
        user=UserResponse.from_row(user),
        token=auth.create_access_token(user),
    )


@router.get(
    "/me",
    response_model=UserInfoResponse,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Current user",
)
async def me(
    current: CurrentUser = Depends(get_current_user),
    pool: ConnectionPool = Depends(get_pool),
) -> UserInfoResponse:
    user = await user_service.get_user(pool, current.id)
    return UserInfoResponse(user=UserResponse.from_row(user))


@router.post(
    "/refresh",
    response_model=TokenResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Refresh the access token",
)
async def refresh(
    current: CurrentUser = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
) -> TokenResponse:
    return TokenResponse(token=auth.create_access_token(current.model_dump()))
