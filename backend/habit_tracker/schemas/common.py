"""
Habit Tracker Backend - Shared Response Schemas
===============================================

Error envelope, health report and pool statistics. Every error response the
API produces, whatever the route, has the ErrorResponse shape.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "not_found",
            "message": "habit with ID '42' was not found",
            "details": {"resource": "habit", "resource_id": "42"},
            "request_id": "1f0c2a9e"
        }
    """

    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class PoolStatsResponse(BaseModel):
    initialized: bool = Field(description="Whether the pool has been warmed up")
    size: int = Field(description="Connections currently in the registry")
    in_use: int = Field(description="Connections currently borrowed")
    idle: int = Field(description="Connections available to borrow")
    overflow: int = Field(description="Connections opened beyond the base size")
    base_size: int = Field(description="Configured base pool size (DB_POOL_SIZE)")


class HealthResponse(BaseModel):
    """
    Returned by GET /api/health.

    `status` is "ok" when a `SELECT 1` through the pool succeeds and
    "unhealthy" (HTTP 503) otherwise.
    """

    status: str = Field(description="ok or unhealthy")
    version: str = Field(description="Application version")
    environment: str = Field(description="development, test or production")
    database: str = Field(description="connected or disconnected")
    pool: PoolStatsResponse
    timestamp: datetime = Field(description="Server time (UTC)")
    uptime_seconds: float = Field(description="Seconds since the process started")
