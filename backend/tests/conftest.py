"""
Habit Tracker Backend - Test Configuration (conftest.py)
========================================================

What:  Shared pytest fixtures for the whole suite.
How:   The environment is switched to `test` BEFORE the package is imported,
       so `settings` resolves the database to an in-memory instance and the
       auth service has a signing secret.

Fixtures:
    fake_clock      manually advanced monotonic clock for reaper tests
    fake_factory    FakeFactory class (AsyncMock handles, injectable failure)
    memory_factory  ConnectionFactory for a fresh shared in-memory database
    pool            ConnectionPool(size=2) on memory_factory, fake clock
    schema_pool     pool with the tables created
    app             create_app() with its pool warmed and schema created
    test_client     httpx AsyncClient over ASGITransport on `app`
    auth_headers    Authorization header for a freshly registered user
"""

import os

os.environ["APP_ENV"] = "test"
os.environ["JWT_SECRET"] = "test-secret-not-real"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ.pop("DB_PATH", None)
os.environ.pop("DB_MAX_OVERFLOW", None)

from typing import Dict, List, Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from habit_tracker.config import MEMORY_DATABASE
from habit_tracker.database.connection import ConnectionFactory
from habit_tracker.database.pool import ConnectionPool
from habit_tracker.database.schema import initialize_schema
from habit_tracker.exceptions import DatabaseConnectionError


# ══════════════════════════════════════════════════════════════════════════
# Test doubles
# ══════════════════════════════════════════════════════════════════════════


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeFactory:
    """
    Hands out AsyncMock handles; optionally fails on the Nth creation.

    Lets pool tests observe exactly which handles were closed without a
    real database.
    """

    def __init__(self, fail_on: Optional[int] = None):
        self.fail_on = fail_on
        self.attempts = 0
        self.created: List[AsyncMock] = []

    async def create_connection(self):
        self.attempts += 1
        if self.fail_on is not None and self.attempts == self.fail_on:
            raise DatabaseConnectionError("Failed to connect to database: disk I/O error")
        handle = AsyncMock(name=f"connection-{self.attempts}")
        self.created.append(handle)
        return handle


# ══════════════════════════════════════════════════════════════════════════
# Database fixtures
# ══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_factory() -> ConnectionFactory:
    return ConnectionFactory(MEMORY_DATABASE)


@pytest_asyncio.fixture
async def pool(memory_factory, fake_clock):
    pool = ConnectionPool(memory_factory, size=2, idle_timeout=30.0, clock=fake_clock)
    yield pool
    await pool.close_all()


@pytest_asyncio.fixture
async def schema_pool(pool):
    await pool.initialize()
    await initialize_schema(pool)
    return pool


# ══════════════════════════════════════════════════════════════════════════
# API fixtures
# ══════════════════════════════════════════════════════════════════════════


@pytest_asyncio.fixture
async def app():
    """
    A fresh app with its own in-memory database.

    ASGITransport does not run the lifespan, so the startup steps the
    lifespan would perform (warm-up, schema) are done here.
    """
    from habit_tracker.main import create_app

    application = create_app()
    await application.state.pool.initialize()
    await initialize_schema(application.state.pool)
    yield application
    await application.state.pool.close_all()


@pytest_asyncio.fixture
async def test_client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def register(
    client: AsyncClient,
    username: str = "alice",
    email: str = "alice@example.com",
    password: str = "correct-horse-battery",
) -> Dict[str, str]:
    """Register a user through the API and return its Authorization header."""
    response = await client.post(
        "/api/auth/register",
        json={"username": username, "email": email, "password": password},
    )
    assert response.status_code == 201, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest_asyncio.fixture
async def auth_headers(test_client) -> Dict[str, str]:
    return await register(test_client)


@pytest.fixture
def register_user():
    """The `register` helper, for tests that need more than one account."""
    return register


@pytest.fixture
def fake_factory():
    """FakeFactory class; call it with `fail_on=N` to inject a failure."""
    return FakeFactory
