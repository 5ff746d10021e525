"""
Habit Tracker Backend - User & Habit Service Tests
==================================================

Runs the services against a real in-memory database (schema_pool).

What we test:
    ✅ Registration hashes passwords and rejects duplicates with ConflictError
    ✅ Login failures look the same for unknown email and wrong password
    ✅ Habits are invisible to other users
    ✅ Partial updates, date-range validation, cascade on delete
    ✅ Log upsert, range filtering and removal
"""

from datetime import date

import pytest

from habit_tracker.exceptions import (
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from habit_tracker.schemas.habit import HabitCreate, HabitLogUpsert, HabitUpdate
from habit_tracker.services.habit_service import HabitService
from habit_tracker.services.user_service import UserService
from habit_tracker.utils import db_utils

users = UserService()
habits = HabitService()


async def make_user(pool, name="alice"):
    return await users.create_user(pool, name, f"{name}@example.com", "password-123")


class TestUserService:
    @pytest.mark.asyncio
    async def test_create_user_stores_hash_and_hides_it(self, schema_pool):
        user = await make_user(schema_pool)

        assert "password" not in user
        assert user["role"] == "user"
        stored = await db_utils.query_one(
            schema_pool, "SELECT password FROM users WHERE id = ?", (user["id"],)
        )
        assert stored["password"] != "password-123"

    @pytest.mark.asyncio
    async def test_duplicate_username_or_email_conflicts(self, schema_pool):
        await make_user(schema_pool)

        with pytest.raises(ConflictError):
            await users.create_user(schema_pool, "alice", "new@example.com", "password-123")
        with pytest.raises(ConflictError):
            await users.create_user(schema_pool, "newname", "alice@example.com", "password-123")

    @pytest.mark.asyncio
    async def test_authenticate(self, schema_pool):
        created = await make_user(schema_pool)

        user = await users.authenticate(schema_pool, "alice@example.com", "password-123")

        assert user["id"] == created["id"]
        assert "password" not in user

    @pytest.mark.asyncio
    async def test_authenticate_failures_share_message(self, schema_pool):
        await make_user(schema_pool)

        with pytest.raises(UnauthorizedError) as wrong_password:
            await users.authenticate(schema_pool, "alice@example.com", "nope-nope")
        with pytest.raises(UnauthorizedError) as unknown_email:
            await users.authenticate(schema_pool, "ghost@example.com", "password-123")

        assert wrong_password.value.message == unknown_email.value.message

    @pytest.mark.asyncio
    async def test_get_missing_user(self, schema_pool):
        with pytest.raises(NotFoundError):
            await users.get_user(schema_pool, 404)


class TestHabitService:
    @pytest.mark.asyncio
    async def test_create_and_list(self, schema_pool):
        alice = await make_user(schema_pool)

        habit = await habits.create_habit(
            schema_pool,
            alice["id"],
            HabitCreate(name="Read", frequency="weekly", start_date=date(2024, 1, 1)),
        )

        assert habit["name"] == "Read"
        assert habit["start_date"] == "2024-01-01"
        assert [h["id"] for h in await habits.list_habits(schema_pool, alice["id"])] == [habit["id"]]

    @pytest.mark.asyncio
    async def test_other_users_habit_is_not_found(self, schema_pool):
        alice = await make_user(schema_pool)
        bob = await make_user(schema_pool, "bob")
        habit = await habits.create_habit(schema_pool, alice["id"], HabitCreate(name="Run"))

        with pytest.raises(NotFoundError):
            await habits.get_habit(schema_pool, bob["id"], habit["id"])
        with pytest.raises(NotFoundError):
            await habits.delete_habit(schema_pool, bob["id"], habit["id"])
        assert await habits.list_habits(schema_pool, bob["id"]) == []

    @pytest.mark.asyncio
    async def test_partial_update(self, schema_pool):
        alice = await make_user(schema_pool)
        habit = await habits.create_habit(
            schema_pool,
            alice["id"],
            HabitCreate(name="Run", description="5k", start_date=date(2024, 1, 1)),
        )

        updated = await habits.update_habit(
            schema_pool,
            alice["id"],
            habit["id"],
            HabitUpdate(name="Run far", end_date=date(2024, 6, 1)),
        )

        assert updated["name"] == "Run far"
        assert updated["description"] == "5k"
        assert updated["end_date"] == "2024-06-01"

    @pytest.mark.asyncio
    async def test_update_rejects_inverted_dates(self, schema_pool):
        alice = await make_user(schema_pool)
        habit = await habits.create_habit(
            schema_pool, alice["id"], HabitCreate(name="Run", start_date=date(2024, 5, 1))
        )

        with pytest.raises(ValidationError):
            await habits.update_habit(
                schema_pool, alice["id"], habit["id"], HabitUpdate(end_date=date(2024, 4, 1))
            )

    @pytest.mark.asyncio
    async def test_update_rejects_null_required_field(self, schema_pool):
        alice = await make_user(schema_pool)
        habit = await habits.create_habit(schema_pool, alice["id"], HabitCreate(name="Run"))

        with pytest.raises(ValidationError) as exc_info:
            await habits.update_habit(schema_pool, alice["id"], habit["id"], HabitUpdate(name=None))

        assert "name" in exc_info.value.errors

    @pytest.mark.asyncio
    async def test_delete_cascades_logs(self, schema_pool):
        alice = await make_user(schema_pool)
        habit = await habits.create_habit(schema_pool, alice["id"], HabitCreate(name="Run"))
        await habits.upsert_log(
            schema_pool, alice["id"], habit["id"], date(2024, 1, 2), HabitLogUpsert()
        )

        await habits.delete_habit(schema_pool, alice["id"], habit["id"])

        assert await db_utils.query(schema_pool, "SELECT id FROM habit_logs") == []


class TestHabitLogs:
    @pytest.mark.asyncio
    async def test_upsert_creates_then_updates(self, schema_pool):
        alice = await make_user(schema_pool)
        habit = await habits.create_habit(schema_pool, alice["id"], HabitCreate(name="Run"))
        day = date(2024, 3, 10)

        first = await habits.upsert_log(schema_pool, alice["id"], habit["id"], day, HabitLogUpsert())
        second = await habits.upsert_log(
            schema_pool,
            alice["id"],
            habit["id"],
            day,
            HabitLogUpsert(completed=False, notes="rain"),
        )

        assert first["id"] == second["id"]
        assert first["completed"] == 1
        assert second["completed"] == 0
        assert second["notes"] == "rain"

    @pytest.mark.asyncio
    async def test_list_logs_filters_by_range(self, schema_pool):
        alice = await make_user(schema_pool)
        habit = await habits.create_habit(schema_pool, alice["id"], HabitCreate(name="Run"))
        for day in (1, 5, 9):
            await habits.upsert_log(
                schema_pool, alice["id"], habit["id"], date(2024, 2, day), HabitLogUpsert()
            )

        logs = await habits.list_logs(
            schema_pool, alice["id"], habit["id"], date(2024, 2, 2), date(2024, 2, 9)
        )

        assert [log["date"] for log in logs] == ["2024-02-05", "2024-02-09"]

    @pytest.mark.asyncio
    async def test_delete_missing_log(self, schema_pool):
        alice = await make_user(schema_pool)
        habit = await habits.create_habit(schema_pool, alice["id"], HabitCreate(name="Run"))

        with pytest.raises(NotFoundError):
            await habits.delete_log(schema_pool, alice["id"], habit["id"], date(2024, 1, 1))
