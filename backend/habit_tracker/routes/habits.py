"""
Habit Tracker Backend - Habit Routes
====================================

All endpoints require a bearer token and act on the caller's own habits.

    GET    /api/habits                        list
    POST   /api/habits                        create (201)
    GET    /api/habits/{id}                   detail
    PATCH  /api/habits/{id}                   partial update
    DELETE /api/habits/{id}                   delete with its logs (204)
    GET    /api/habits/{id}/logs              logs, ?from_date=&to_date=
    PUT    /api/habits/{id}/logs/{date}       mark a day (upsert)
    DELETE /api/habits/{id}/logs/{date}       unmark a day (204)
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from habit_tracker.database.pool import ConnectionPool
from habit_tracker.dependencies import get_current_user, get_pool
from habit_tracker.exceptions import ValidationError
from habit_tracker.schemas.common import ErrorResponse
from habit_tracker.schemas.habit import (
    HabitCreate,
    HabitLogResponse,
    HabitLogUpsert,
    HabitResponse,
    HabitUpdate,
)
from habit_tracker.schemas.user import CurrentUser
from habit_tracker.services.habit_service import habit_service

router = APIRouter(
    prefix="/api/habits",
    tags=["Habits"],
    responses={401: {"model": ErrorResponse}},
)

NOT_FOUND = {404: {"description": "Habit not found", "model": ErrorResponse}}


@router.get("", response_model=List[HabitResponse], summary="List your habits")
async def list_habits(
    user: CurrentUser = Depends(get_current_user),
    pool: ConnectionPool = Depends(get_pool),
) -> List[HabitResponse]:
    rows = await habit_service.list_habits(pool, user.id)
    return [HabitResponse(**row) for row in rows]


@router.post(
    "",
    response_model=HabitResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a habit",
)
async def create_habit(
    body: HabitCreate,
    user: CurrentUser = Depends(get_current_user),
    pool: ConnectionPool = Depends(get_pool),
) -> HabitResponse:
    return HabitResponse(**await habit_service.create_habit(pool, user.id, body))


@router.get("/{habit_id}", response_model=HabitResponse, responses=NOT_FOUND)
async def get_habit(
    habit_id: int,
    user: CurrentUser = Depends(get_current_user),
    pool: ConnectionPool = Depends(get_pool),
) -> HabitResponse:
    return HabitResponse(**await habit_service.get_habit(pool, user.id, habit_id))


@router.patch("/{habit_id}", response_model=HabitResponse, responses=NOT_FOUND)
async def update_habit(
    habit_id: int,
    body: HabitUpdate,
    user: CurrentUser = Depends(get_current_user),
    pool: ConnectionPool = Depends(get_pool),
) -> HabitResponse:
    return HabitResponse(**await habit_service.update_habit(pool, user.id, habit_id, body))


@router.delete(
    "/{habit_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=NOT_FOUND,
)
async def delete_habit(
    habit_id: int,
    user: CurrentUser = Depends(get_current_user),
    pool: ConnectionPool = Depends(get_pool),
) -> Response:
    await habit_service.delete_habit(pool, user.id, habit_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Logs ─────────────────────────────────────────────────────────────────


@router.get("/{habit_id}/logs", response_model=List[HabitLogResponse], responses=NOT_FOUND)
async def list_logs(
    habit_id: int,
    from_date: Optional[date] = Query(default=None, description="Inclusive lower bound"),
    to_date: Optional[date] = Query(default=None, description="Inclusive upper bound"),
    user: CurrentUser = Depends(get_current_user),
    pool: ConnectionPool = Depends(get_pool),
) -> List[HabitLogResponse]:
    if from_date and to_date and from_date > to_date:
        raise ValidationError(
            "from_date must not be after to_date",
            errors={"from_date": "must not be after to_date"},
        )
    rows = await habit_service.list_logs(pool, user.id, habit_id, from_date, to_date)
    return [HabitLogResponse(**row) for row in rows]


@router.put("/{habit_id}/logs/{day}", response_model=HabitLogResponse, responses=NOT_FOUND)
async def upsert_log(
    habit_id: int,
    day: date,
    body: HabitLogUpsert,
    user: CurrentUser = Depends(get_current_user),
    pool: ConnectionPool = Depends(get_pool),
) -> HabitLogResponse:
    return HabitLogResponse(**await habit_service.upsert_log(pool, user.id, habit_id, day, body))


@router.delete(
    "/{habit_id}/logs/{day}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=NOT_FOUND,
)
async def delete_log(
    habit_id: int,
    day: date,
    user: CurrentUser = Depends(get_current_user),
    pool: ConnectionPool = Depends(get_pool),
) -> Response:
    await habit_service.delete_log(pool, user.id, habit_id, day)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
