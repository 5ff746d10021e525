"""
Habit Tracker Backend - Health Check Route
==========================================

GET /api/health runs `SELECT 1` through the pool, so a passing check proves a
connection can be borrowed, used and returned. It also reports the pool's
registry counters. Returns 503 when the database cannot be reached.
"""

import logging
import time
from dataclasses import asdict
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Response

from habit_tracker import __version__
from habit_tracker.config import Settings
from habit_tracker.database.pool import ConnectionPool
from habit_tracker.dependencies import get_pool, get_settings
from habit_tracker.exceptions import DatabaseError
from habit_tracker.schemas.common import HealthResponse, PoolStatsResponse
from habit_tracker.utils import db_utils

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
)
async def health_check(
    response: Response,
    pool: ConnectionPool = Depends(get_pool),
    app_settings: Settings = Depends(get_settings),
) -> HealthResponse:
    db_status = "connected"
    overall = "ok"

    try:
        await db_utils.query_one(pool, "SELECT 1 AS ok")
    except DatabaseError as e:
        db_status = "disconnected"
        overall = "unhealthy"
        response.status_code = 503
        logger.warning("Health check: database unreachable: %s", e)

    stats = pool.stats()
    return HealthResponse(
        status=overall,
        version=__version__,
        environment=app_settings.environment,
        database=db_status,
        pool=PoolStatsResponse(**asdict(stats)),
        timestamp=datetime.now(timezone.utc),
        uptime_seconds=round(time.time() - _start_time, 2),
    )
