"""
location.py
-----------
Purpose:
    SOS trigger, live location and emergency contact endpoints.

Architecture:
    - API layer: HTTP concerns, request validation, auth, error translation
    - Service layer: returns domain models and raises ServiceError subclasses
    - API layer: converts domain models → HTTP response models

Usage:
    1. POST /api/location/sos - Alert every emergency contact of a user
    2. POST /api/location/update - Overwrite a user's last location
    3. GET /api/location/last-location/{user_id} - Read the last location
    4. POST /api/location/add-contact - Append a contact (bearer auth)
    5. DELETE /api/location/remove-contact/{user_id}/{contact_id} - Remove a contact
    6. GET /api/location/contacts - List contacts in insertion order (bearer auth)
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status

from safewatch.auth.verify import auth_dependency, claims_user_id
from safewatch.infrastructure.observability.logging import get_logger
from safewatch.models.api.location_request import (
    AddContactRequest,
    LocationUpdateRequest,
    SosRequest,
)
from safewatch.models.api.location_response import (
    ContactResponse,
    LastLocationResponse,
    MessageResponse,
    MsgResponse,
    SosResponse,
)
from safewatch.models.domain.sos_domain import Coordinate
from safewatch.services import sos_service as sos_module
from safewatch.services.contact_service import contact_service
from safewatch.services.errors import (
    NoContactsError,
    NotFoundError,
    PersistenceError,
    RateLimitedError,
    ServiceError,
)
from safewatch.services.location_service import location_service

router = APIRouter(prefix="/api/location", tags=["location"])
logger = get_logger(__name__)


def _to_http(e: ServiceError) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    logger.error("Location operation failed", error=e.message, error_code=e.error_code)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server error")


@router.post("/sos", response_model=SosResponse)
async def trigger_sos(body: SosRequest, request: Request):
    """
    Alert every emergency contact of the user identified by email and phone.

    Partial delivery failures still return 200; the summary lists them.

    Raises:
        400: User has no emergency contacts
        404: No user matches email and phone
        429: Too many SOS requests from this client
        500: Unexpected failure
    """
    origin_key = getattr(request.state, "ip_address", None)
    coordinate = Coordinate(latitude=body.latitude, longitude=body.longitude)

    try:
        outcome = await sos_module.sos_service.trigger(
            body.email, body.phone, coordinate, origin_key
        )
    except RateLimitedError as e:
        request.state.rate_limit_info = e.rate_limit_info
        logger.warning("SOS rate limited", origin=origin_key, retry_after=e.retry_after)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=e.message,
            headers={"Retry-After": str(e.retry_after)},
        ) from e
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e
    except NoContactsError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message) from e
    except PersistenceError as e:
        logger.error("SOS failed on storage", error=e.message)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send SOS alerts",
        ) from e
    except Exception as e:
        logger.error("SOS failed unexpectedly", error=str(e), error_type=type(e).__name__)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send SOS alerts",
        ) from e

    if outcome.rate_limit_info:
        request.state.rate_limit_info = outcome.rate_limit_info

    return SosResponse.from_outcome(outcome)


@router.post("/update", response_model=MsgResponse)
async def update_location(body: LocationUpdateRequest):
    try:
        await location_service.record_location(body.user_id, body.latitude, body.longitude)
    except ServiceError as e:
        raise _to_http(e) from e

    return MsgResponse(msg="Location updated successfully")


@router.get("/last-location/{user_id}", response_model=LastLocationResponse)
async def get_last_location(user_id: str):
    try:
        location = await location_service.get_last_location(user_id)
    except ServiceError as e:
        raise _to_http(e) from e

    if location is None:
        return LastLocationResponse()

    return LastLocationResponse(
        latitude=location.latitude,
        longitude=location.longitude,
        timestamp=location.timestamp,
    )


@router.post("/add-contact", response_model=MessageResponse)
async def add_contact(body: AddContactRequest, claims: dict = Depends(auth_dependency)):
    user_id = claims_user_id(claims)

    try:
        contact = await contact_service.add_contact(
            user_id,
            name=body.contact_name,
            phone=body.contact_phone,
            email=body.contact_email,
            relationship=body.relationship,
        )
    except ServiceError as e:
        raise _to_http(e) from e

    logger.info("Emergency contact added", user_id=user_id, contact_id=contact.id)
    return MessageResponse(message="Emergency contact added successfully")


@router.delete("/remove-contact/{user_id}/{contact_id}", response_model=MsgResponse)
async def remove_contact(user_id: str, contact_id: str):
    try:
        await contact_service.remove_contact(user_id, contact_id)
    except ServiceError as e:
        raise _to_http(e) from e

    return MsgResponse(msg="Emergency contact removed successfully")


@router.get("/contacts", response_model=list[ContactResponse])
async def list_contacts(claims: dict = Depends(auth_dependency)):
    user_id = claims_user_id(claims)

    try:
        contacts = await contact_service.list_contacts(user_id)
    except ServiceError as e:
        raise _to_http(e) from e

    return [ContactResponse(**c.model_dump()) for c in contacts]
