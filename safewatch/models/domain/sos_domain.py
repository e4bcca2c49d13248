"""
Domain models for the SOS dispatch pipeline.

An SOS event lives only for the duration of one orchestration call; nothing in
this module is persisted.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from safewatch.models.domain.user_domain import EmergencyContact


class SosStage(str, Enum):
    RECEIVED = "received"
    RATE_LIMIT_CHECKED = "rate_limit_checked"
    USER_RESOLVED = "user_resolved"
    CONTACTS_VALIDATED = "contacts_validated"
    LOCATION_PERSISTED = "location_persisted"
    DISPATCHING = "dispatching"
    COMPLETED = "completed"
    FAILED = "failed"


class Coordinate(BaseModel):
    """Reported coordinate. Ranges are accepted as-is."""

    latitude: float
    longitude: float

    def as_query(self) -> str:
        return f"{self.latitude},{self.longitude}"


class ChannelResult(BaseModel):
    """Outcome of one send on one channel for one contact."""

    channel: str
    success: bool
    error: str | None = None


class ContactOutcome(BaseModel):
    """Aggregated outcome for one contact across every enabled channel."""

    contact_id: str
    contact_name: str | None = None
    contact_email: str | None = None
    channels: list[ChannelResult] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return bool(self.channels) and all(result.success for result in self.channels)

    @property
    def errors(self) -> list[str]:
        return [f"{r.channel}: {r.error}" for r in self.channels if not r.success]


class SosEvent(BaseModel):
    user_id: str
    coordinate: Coordinate
    reported_at: datetime
    contacts: list[EmergencyContact]


class SosOutcome(BaseModel):
    """Result of a completed SOS orchestration."""

    event: SosEvent
    stage: SosStage = SosStage.COMPLETED
    stage_history: list[SosStage] = Field(default_factory=list)
    location_saved: bool = True
    location_error: str | None = None
    outcomes: list[ContactOutcome] = Field(default_factory=list)
    rate_limit_info: dict | None = None

    @property
    def succeeded(self) -> list[ContactOutcome]:
        return [outcome for outcome in self.outcomes if outcome.success]

    @property
    def failed(self) -> list[ContactOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.success]
