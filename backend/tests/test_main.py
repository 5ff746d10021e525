"""
Habit Tracker Backend - Application Lifecycle Tests
===================================================

What we test:
    ✅ Pool warm-up is retried on PoolInitError and gives up after the last attempt
    ✅ The lifespan warms the pool, creates tables, and closes everything on exit
    ✅ A failed schema step closes the warmed pool before startup aborts
    ✅ Warm-up retries follow the app's own DB_INIT_* settings
    ✅ Production refuses to start with an unsafe configuration
    ✅ Log records carry the current request ID
"""

import logging
from unittest.mock import AsyncMock, patch

import pytest
from tenacity import stop_after_attempt, wait_none

from habit_tracker.config import Settings
from habit_tracker.database.pool import ConnectionPool
from habit_tracker.exceptions import DatabaseConnectionError, DatabaseError, PoolInitError
from habit_tracker.main import create_app, warm_up_pool
from habit_tracker.middleware.request_id import RequestIDLogFilter, request_id_var
from habit_tracker.utils import db_utils


class AlwaysFailingFactory:
    def __init__(self):
        self.attempts = 0

    async def create_connection(self):
        self.attempts += 1
        raise DatabaseConnectionError("Failed to connect to database: unable to open database file")


class TestWarmUp:
    @pytest.mark.asyncio
    async def test_retries_until_pool_initializes(self, fake_factory, fake_clock):
        factory = fake_factory(fail_on=1)
        pool = ConnectionPool(factory, size=2, clock=fake_clock)
        try:
            await warm_up_pool.retry_with(wait=wait_none())(pool)

            assert pool.initialized
            assert pool.stats().size == 2
            assert factory.attempts == 3  # one failed attempt, then two connections
        finally:
            await pool.close_all()

    @pytest.mark.asyncio
    async def test_gives_up_after_last_attempt(self, fake_clock):
        factory = AlwaysFailingFactory()
        pool = ConnectionPool(factory, size=2, clock=fake_clock)

        with pytest.raises(PoolInitError):
            await warm_up_pool.retry_with(wait=wait_none(), stop=stop_after_attempt(3))(pool)

        assert factory.attempts == 3
        assert pool.initialized is False


class TestLifespan:
    @pytest.mark.asyncio
    async def test_startup_and_shutdown(self):
        app = create_app()
        pool = app.state.pool

        with patch("habit_tracker.main.setup_logging"):
            async with app.router.lifespan_context(app):
                assert pool.initialized
                tables = await db_utils.query(
                    pool, "SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'habits'"
                )
                assert tables == [{"name": "habits"}]

        assert pool.initialized is False
        assert pool.stats().size == 0

    @pytest.mark.asyncio
    async def test_production_refuses_placeholder_secret(self, tmp_path):
        app = create_app(
            Settings(
                environment="production",
                jwt_secret="your_jwt_secret",
                db_path=str(tmp_path / "prod.sqlite"),
            )
        )

        with patch("habit_tracker.main.setup_logging"):
            with pytest.raises(ValueError, match="JWT_SECRET must be changed"):
                async with app.router.lifespan_context(app):
                    pass

        assert app.state.pool.initialized is False

    @pytest.mark.asyncio
    async def test_schema_failure_closes_pool(self):
        app = create_app()
        pool = app.state.pool
        failure = AsyncMock(side_effect=DatabaseError("Schema initialization failed: disk full"))

        with patch("habit_tracker.main.setup_logging"), patch(
            "habit_tracker.main.initialize_schema", failure
        ):
            with pytest.raises(DatabaseError, match="Schema initialization failed"):
                async with app.router.lifespan_context(app):
                    pass

        assert pool.initialized is False
        assert pool.reaper_task is None
        assert pool.stats().size == 0

    @pytest.mark.asyncio
    async def test_warm_up_attempts_follow_app_settings(self):
        app = create_app(
            Settings(db_init_attempts=2, db_init_retry_min_wait=0, db_init_retry_max_wait=0)
        )
        factory = AlwaysFailingFactory()
        app.state.pool.factory = factory

        with patch("habit_tracker.main.setup_logging"):
            with pytest.raises(PoolInitError):
                async with app.router.lifespan_context(app):
                    pass

        assert factory.attempts == 2

    def test_each_app_gets_its_own_pool_and_auth_service(self):
        first, second = create_app(), create_app()

        assert first.state.auth_service is not second.state.auth_service
        assert first.state.pool is not second.state.pool


class TestSettings:
    def test_test_environment_uses_memory_database(self):
        assert Settings(environment="test").resolved_db_path == ":memory:"

    def test_default_file_per_environment(self):
        assert Settings(environment="development").resolved_db_path == "./database-development.sqlite"

    def test_production_validation_collects_all_problems(self):
        settings = Settings(environment="production", jwt_secret="your_jwt_secret", db_path=":memory:")

        with pytest.raises(ValueError) as exc_info:
            settings.validate_required_for_production()

        assert "JWT_SECRET" in str(exc_info.value)
        assert "DB_PATH" in str(exc_info.value)

    def test_rejects_unknown_environment(self):
        with pytest.raises(ValueError):
            Settings(environment="staging")


def test_log_filter_adds_request_id():
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "hello", None, None)
    token = request_id_var.set("abc12345")
    try:
        RequestIDLogFilter().filter(record)
    finally:
        request_id_var.reset(token)

    assert record.request_id == "abc12345"

    RequestIDLogFilter().filter(record)
    assert record.request_id == "-"
