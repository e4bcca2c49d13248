from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class ActivityType(str, Enum):
    LOGIN = "login"
    PROFILE_UPDATE = "profile_update"
    PASSWORD_CHANGE = "password_change"
    SOS_ALERT = "sos_alert"


class LastLocation(BaseModel):
    """Most recent reported coordinate. Overwritten wholesale, never appended."""

    latitude: float
    longitude: float
    timestamp: datetime


class EmergencyContact(BaseModel):
    """Contact owned by a user. Email/phone are not validated until send time."""

    id: str
    name: str | None = None
    phone: str | None = None
    email: str | None = None
    relationship: str | None = None


class ActivityEvent(BaseModel):
    type: ActivityType
    timestamp: datetime
    details: str = ""


class User(BaseModel):
    """User record as seen by the services (password hash never loaded)."""

    id: str
    name: str
    email: str
    phone: str
    address: str | None = None
    avatar: str = ""
    status: Literal["active", "inactive"] = "active"
    last_active: datetime | None = None
    last_location: LastLocation | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    emergency_contacts: list[EmergencyContact] = Field(default_factory=list)
    recent_activity: list[ActivityEvent] = Field(default_factory=list)
