# safewatch/models/api/location_response.py
from datetime import datetime

from pydantic import BaseModel, Field

from safewatch.models.domain.sos_domain import SosOutcome

SOS_SUCCESS_MESSAGE = "SOS alerts sent successfully"


class MessageResponse(BaseModel):
    message: str


class MsgResponse(BaseModel):
    msg: str


class LastLocationResponse(BaseModel):
    """Stored location; every field is null when no location was ever reported."""

    latitude: float | None = None
    longitude: float | None = None
    timestamp: datetime | None = None


class ContactResponse(BaseModel):
    id: str
    name: str | None = None
    phone: str | None = None
    email: str | None = None
    relationship: str | None = None


class ContactFailure(BaseModel):
    contact_id: str
    contact_email: str | None = None
    errors: list[str]


class SosResponse(BaseModel):
    """Response for POST /api/location/sos. Partial failures still return 200."""

    message: str = SOS_SUCCESS_MESSAGE
    contacts_total: int
    contacts_notified: int
    contacts_failed: int
    location_saved: bool
    failures: list[ContactFailure] = Field(default_factory=list)

    @classmethod
    def from_outcome(cls, outcome: SosOutcome) -> "SosResponse":
        return cls(
            contacts_total=len(outcome.outcomes),
            contacts_notified=len(outcome.succeeded),
            contacts_failed=len(outcome.failed),
            location_saved=outcome.location_saved,
            failures=[
                ContactFailure(
                    contact_id=failed.contact_id,
                    contact_email=failed.contact_email,
                    errors=failed.errors,
                )
                for failed in outcome.failed
            ],
        )
