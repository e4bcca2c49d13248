"""
admin.py
--------
Purpose:
    Admin panel endpoints. Every route requires an admin bearer token.

Usage:
    GET  /api/admin/users
    GET  /api/admin/user/{user_id}
    PUT  /api/admin/user/{user_id}/update
    PUT  /api/admin/user/{user_id}/toggle-status
    GET  /api/admin/check-status
"""

from fastapi import APIRouter, Depends, HTTPException, status

from safewatch.auth.verify import admin_dependency
from safewatch.infrastructure.observability.logging import get_logger
from safewatch.models.api.admin_request import AdminUserUpdateRequest
from safewatch.models.api.admin_response import (
    AdminStatusResponse,
    AdminUserDetail,
    AdminUserListResponse,
    AdminUserUpdateResponse,
)
from safewatch.services.admin_service import admin_service
from safewatch.services.errors import ConflictError, NotFoundError, ServiceError

router = APIRouter(prefix="/api/admin", tags=["admin"])
logger = get_logger(__name__)


def _to_http(e: ServiceError) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    if isinstance(e, ConflictError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    logger.error("Admin operation failed", error=e.message, error_code=e.error_code)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server error")


@router.get("/users", response_model=AdminUserListResponse)
async def list_users(_claims: dict = Depends(admin_dependency)):
    """All users, newest first, with their emergency contacts."""
    try:
        users = await admin_service.list_users()
    except ServiceError as e:
        raise _to_http(e) from e

    return AdminUserListResponse.from_users(users)


@router.get("/user/{user_id}", response_model=AdminUserDetail)
async def get_user(user_id: str, _claims: dict = Depends(admin_dependency)):
    try:
        user = await admin_service.get_user_detail(user_id)
    except ServiceError as e:
        raise _to_http(e) from e

    return AdminUserDetail.from_user(user)


@router.put("/user/{user_id}/update", response_model=AdminUserUpdateResponse)
async def update_user(
    user_id: str,
    body: AdminUserUpdateRequest,
    _claims: dict = Depends(admin_dependency),
):
    fields = body.changed_fields()
    if not fields:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    try:
        user = await admin_service.update_user(user_id, fields)
    except ServiceError as e:
        raise _to_http(e) from e

    return AdminUserUpdateResponse(
        message="User updated successfully", user=AdminUserDetail.from_user(user)
    )


@router.put("/user/{user_id}/toggle-status", response_model=AdminUserUpdateResponse)
async def toggle_user_status(user_id: str, _claims: dict = Depends(admin_dependency)):
    try:
        user = await admin_service.toggle_status(user_id)
    except ServiceError as e:
        raise _to_http(e) from e

    return AdminUserUpdateResponse(
        message=f"User is now {user.status}", user=AdminUserDetail.from_user(user)
    )


@router.get("/check-status", response_model=AdminStatusResponse)
async def check_status(_claims: dict = Depends(admin_dependency)):
    return AdminStatusResponse(isAdmin=True)
