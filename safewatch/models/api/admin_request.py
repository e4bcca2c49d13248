# safewatch/models/api/admin_request.py
from pydantic import BaseModel, Field


class AdminUserUpdateRequest(BaseModel):
    """Request for POST /api/admin/user/{user_id}/update. Omitted fields are left unchanged."""

    name: str | None = Field(None, min_length=1)
    email: str | None = Field(None, min_length=3)
    phone: str | None = Field(None, min_length=1)
    address: str | None = None

    def changed_fields(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude_none=True)
