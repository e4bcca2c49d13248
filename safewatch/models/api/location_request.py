# safewatch/models/api/location_request.py
from pydantic import BaseModel, ConfigDict, Field


class SosRequest(BaseModel):
    """Request body for POST /api/location/sos."""

    email: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    # No range checks: out-of-range coordinates are stored and sent as-is
    latitude: float
    longitude: float


class LocationUpdateRequest(BaseModel):
    """Request body for POST /api/location/update."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId")
    latitude: float
    longitude: float


class AddContactRequest(BaseModel):
    """Request body for POST /api/location/add-contact. Email format is checked at send time."""

    model_config = ConfigDict(populate_by_name=True)

    contact_name: str | None = Field(None, alias="contactName")
    contact_phone: str | None = Field(None, alias="contactPhone")
    contact_email: str | None = Field(None, alias="contactEmail")
    relationship: str | None = None
