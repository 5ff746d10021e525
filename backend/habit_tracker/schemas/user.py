"""
Habit Tracker Backend - User & Auth Schemas
===========================================

Request bodies for register / login, and the envelopes the auth routes return.
The stored password hash never appears in any response model.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class UserCreate(BaseModel):
    username: str = Field(
        min_length=3,
        max_length=50,
        pattern=r"^[A-Za-z0-9_.-]+$",
        description="Login handle (letters, digits, _ . -)",
    )
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=8, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class UserLogin(BaseModel):
    email: str = Field(max_length=255)
    password: str = Field(min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class UserResponse(BaseModel):
    """
    Public view of a user.

    `roles` is a list so the token claim and the response share one shape;
    each user currently holds exactly one role.
    """

    id: int
    username: str
    email: str
    roles: List[str]
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "UserResponse":
        return cls(
            id=row["id"],
            username=row["username"],
            email=row["email"],
            roles=[row["role"]],
            created_at=row.get("created_at"),
        )


class CurrentUser(BaseModel):
    """Identity decoded from a verified access token."""

    id: int
    username: str
    email: str
    roles: List[str] = Field(default_factory=list)


class AuthResponse(BaseModel):
    message: str
    user: UserResponse
    token: str
    token_type: str = "bearer"


class UserInfoResponse(BaseModel):
    message: str = "User info retrieved successfully"
    user: UserResponse


class TokenResponse(BaseModel):
    message: str = "Token refreshed successfully"
    token: str
    token_type: str = "bearer"
