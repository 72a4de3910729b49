from __future__ import annotations

from datetime import datetime

from pydantic import Field

from quizhub.models.user import UserRole
from quizhub.schemas.base import ApiModel

USERNAME_PATTERN = r"^[A-Za-z0-9_]{3,30}$"
EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


class UserPublic(ApiModel):
    id: str
    username: str
    email: str
    role: UserRole
    created_at: datetime


class UserResponse(ApiModel):
    user: UserPublic


class UserListResponse(ApiModel):
    count: int
    users: list[UserPublic]


class UserMutationResponse(ApiModel):
    message: str
    user: UserPublic


class ProfileUpdateRequest(ApiModel):
    # Absent fields are left alone; explicit nulls are rejected by the router.
    username: str | None = Field(default=None, pattern=USERNAME_PATTERN)
    email: str | None = Field(default=None, pattern=EMAIL_PATTERN, max_length=254)
    password: str | None = None
    # Required when changing your own password.
    current_password: str | None = None


class UserUpdateRequest(ProfileUpdateRequest):
    role: UserRole | None = None
