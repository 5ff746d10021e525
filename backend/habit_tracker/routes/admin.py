"""Admin-only introspection. GET /api/admin/pool returns live pool counters."""

from dataclasses import asdict

from fastapi import APIRouter, Depends

from habit_tracker.database.pool import ConnectionPool
from habit_tracker.dependencies import get_pool, require_roles
from habit_tracker.models.user import ROLE_ADMIN
from habit_tracker.schemas.common import ErrorResponse, PoolStatsResponse
from habit_tracker.schemas.user import CurrentUser

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.get(
    "/pool",
    response_model=PoolStatsResponse,
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
    summary="Connection pool statistics",
)
async def pool_stats(
    _: CurrentUser = Depends(require_roles(ROLE_ADMIN)),
    pool: ConnectionPool = Depends(get_pool),
) -> PoolStatsResponse:
    return PoolStatsResponse(**asdict(pool.stats()))
