"""
Habit Tracker Backend - FastAPI Application Factory
===================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() builds the app, its ConnectionPool (app.state.pool),
       middleware, exception handlers and routers.
Who:   uvicorn (habit_tracker.main:app, or `python -m habit_tracker`) and tests.

Application Architecture:
    ┌──────────────────────────────────────────────────────┐
    │                    FastAPI App                       │
    │  Middleware: RateLimit → RequestID → Logging → CORS  │
    │  Routes:     /api/health  /api/auth  /api/habits     │
    │              /api/admin                              │
    │  State:      app.state.pool (ConnectionPool)         │
    │              app.state.auth_service (AuthService)    │
    │              app.state.settings (Settings)           │
    └──────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Configure logging
    2. Validate configuration (fatal in production)
    3. Warm up the connection pool, retrying PoolInitError with backoff
    4. Create tables and indexes

    Shutdown (uvicorn turns SIGINT / SIGTERM into a lifespan shutdown):
    1. Stop the idle reaper and close every connection
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from habit_tracker import __version__
from habit_tracker.config import Settings, settings
from habit_tracker.database.pool import ConnectionPool
from habit_tracker.database.schema import initialize_schema
from habit_tracker.exceptions import (
    DatabaseError,
    HabitTrackerError,
    PoolInitError,
    RateLimitExceededError,
)
from habit_tracker.middleware.logging import RequestLoggingMiddleware
from habit_tracker.middleware.rate_limit import RateLimitMiddleware
from habit_tracker.middleware.request_id import (
    RequestIDLogFilter,
    RequestIDMiddleware,
    request_id_var,
)
from habit_tracker.routes import admin, auth, habits, health
from habit_tracker.services.auth_service import AuthService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger once, before anything else logs.

    Format: %(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s
    The request ID comes from RequestIDLogFilter ("-" outside a request).
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIDLogFilter())

    logging.basicConfig(
        level=getattr(logging, level or settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Startup helpers
# ══════════════════════════════════════════════════════════════════════════


def warm_up_policy(app_settings: Settings) -> dict:
    """Stop and wait strategies for warm_up_pool, from DB_INIT_* settings."""
    return {
        "stop": stop_after_attempt(app_settings.db_init_attempts),
        "wait": wait_exponential(
            multiplier=app_settings.db_init_retry_min_wait,
            max=app_settings.db_init_retry_max_wait,
        )
        + wait_random(0, app_settings.db_init_retry_min_wait),
    }


@retry(
    retry=retry_if_exception_type(PoolInitError),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
    **warm_up_policy(settings),
)
async def warm_up_pool(pool: ConnectionPool) -> None:
    """
    Open the pool's base connections, retrying a failed warm-up.

    The pool itself never retries; a failed initialize() leaves it empty and
    uninitialized, so each attempt here starts from scratch. After the last
    attempt the PoolInitError propagates and startup aborts.

    The decorator carries the module settings; the lifespan rebinds the
    policy to the app's own settings with `warm_up_pool.retry_with(...)`.
    """
    await pool.initialize()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    app_settings: Settings = app.state.settings
    pool: ConnectionPool = app.state.pool

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(app_settings.log_level)
    logger.info("Habit Tracker backend starting up (%s)", app_settings.environment)

    try:
        app_settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        if app_settings.is_production:
            raise

    await warm_up_pool.retry_with(**warm_up_policy(app_settings))(pool)
    try:
        await initialize_schema(pool)
    except Exception:
        await pool.close_all()
        raise

    logger.info("Server ready at http://%s:%d", app_settings.host, app_settings.port)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Habit Tracker backend shutting down...")
    await pool.close_all()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════


def _error_body(code: str, message: str, details: Optional[dict] = None) -> dict:
    return {
        "error": code,
        "message": message,
        "details": details,
        "request_id": request_id_var.get("") or None,
    }


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to the ErrorResponse envelope.

    Handler hierarchy (Starlette picks the most specific class):
        RateLimitExceededError   → 429 with Retry-After
        DatabaseError            → 500 generic message, context logged only
                                   (ConstraintViolationError → 400)
        HabitTrackerError        → exc.status_code, context as details
        RequestValidationError   → 422 with per-field messages
        HTTPException            → its status; 404 says "Route ... not found"
        Exception                → 500 generic message, traceback logged
    """

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.error_code, exc.message, exc.context),
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        # SQL text and driver messages stay in the log
        logger.error("Database error: %s | Context: %s", exc.message, exc.context)
        if exc.status_code < 500:
            return JSONResponse(
                status_code=exc.status_code,
                content=_error_body(exc.error_code, exc.message),
            )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(
                exc.error_code, "An internal error occurred. Please try again later."
            ),
        )

    @app.exception_handler(HabitTrackerError)
    async def handle_app_error(request: Request, exc: HabitTrackerError):
        if exc.status_code >= 500:
            logger.error("%s: %s | Context: %s", type(exc).__name__, exc.message, exc.context)
        else:
            logger.info("%s: %s", type(exc).__name__, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.error_code, exc.message, exc.context or None),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
                "message": err.get("msg", "Invalid value"),
            }
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content=_error_body("validation_error", "Request validation failed", {"errors": errors}),
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and exc.detail == "Not Found":
            message = f"Route {request.url.path} not found"
        else:
            message = str(exc.detail)
        code = "not_found" if exc.status_code == 404 else "http_error"
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(code, message),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("Unexpected error: %s", exc, exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """
    Build a fully configured app with its own (not yet warmed) pool.

    Every call creates a new pool, so tests get independent databases.
    """
    app_settings = app_settings or settings

    app = FastAPI(
        title="Habit Tracker API",
        description="Track habits and daily completions. JSON API over a pooled SQLite store.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.pool = ConnectionPool.from_settings(app_settings)
    app.state.auth_service = AuthService(app_settings)

    # Middleware executes in REVERSE order of addition
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_credentials=app_settings.cors_origins_list != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=app_settings.rate_limit_requests,
        window=app_settings.rate_limit_window,
    )

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(habits.router)
    app.include_router(admin.router)

    return app


app = create_app()
