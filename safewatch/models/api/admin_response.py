# safewatch/models/api/admin_response.py
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from safewatch.models.domain.user_domain import (
    ActivityEvent,
    EmergencyContact,
    LastLocation,
    User,
)


class AdminUserSummary(BaseModel):
    """Row in the admin user list."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    phone: str
    address: str | None = None
    avatar: str = ""
    status: Literal["active", "inactive"]
    last_active: datetime | None = None
    last_location: LastLocation | None = None
    created_at: datetime | None = None
    emergency_contacts: list[EmergencyContact] = Field(default_factory=list)


class AdminUserDetail(AdminUserSummary):
    """Single user with recent activity for GET /api/admin/user/{user_id}."""

    updated_at: datetime | None = None
    recent_activity: list[ActivityEvent] = Field(default_factory=list)

    @classmethod
    def from_user(cls, user: User) -> "AdminUserDetail":
        return cls.model_validate(user.model_dump())


class AdminUserListResponse(BaseModel):
    users: list[AdminUserSummary]
    count: int

    @classmethod
    def from_users(cls, users: list[User]) -> "AdminUserListResponse":
        return cls(
            users=[AdminUserSummary.model_validate(u.model_dump()) for u in users],
            count=len(users),
        )


class AdminUserUpdateResponse(BaseModel):
    message: str
    user: AdminUserDetail


class AdminStatusResponse(BaseModel):
    isAdmin: bool
