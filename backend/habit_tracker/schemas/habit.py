"""
Habit Tracker Backend - Habit & Log Schemas
===========================================

What:  Request/response models for /api/habits and its /logs sub-resource.
How:   Dates travel as ISO 8601 strings (YYYY-MM-DD) and are stored that way
       in SQLite; pydantic parses them back into `date` on the way out.

Validation rules:
    - frequency is one of daily / weekly / monthly
    - end_date, when given, is not before start_date
    - HabitUpdate is partial: only fields present in the body are changed
"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

Frequency = Literal["daily", "weekly", "monthly"]


# ══════════════════════════════════════════════════════════════════════════
# Habits
# ══════════════════════════════════════════════════════════════════════════


class HabitCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    frequency: Frequency = "daily"
    start_date: date = Field(default_factory=date.today)
    end_date: Optional[date] = None

    @model_validator(mode="after")
    def check_date_range(self) -> "HabitCreate":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class HabitUpdate(BaseModel):
    """
    Partial update. Fields left out of the body keep their stored value;
    `end_date: null` clears the end date. The combined date range is checked
    by the service, which knows the stored values.
    """

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    frequency: Optional[Frequency] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class HabitResponse(BaseModel):
    id: int
    user_id: int
    name: str
    description: Optional[str] = None
    frequency: str
    start_date: date
    end_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime


# ══════════════════════════════════════════════════════════════════════════
# Logs
# ══════════════════════════════════════════════════════════════════════════


class HabitLogUpsert(BaseModel):
    completed: bool = True
    notes: Optional[str] = Field(default=None, max_length=1000)


class HabitLogResponse(BaseModel):
    id: int
    habit_id: int
    date: date
    completed: bool
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
