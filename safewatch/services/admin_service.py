"""
Admin panel operations: list, inspect and manage users.
"""

from typing import Any

from psycopg import errors as pg_errors

from safewatch.db.helpers import DatabaseError
from safewatch.infrastructure.observability.logging import get_logger
from safewatch.models.domain.user_domain import User
from safewatch.repositories.user_repository import UserRepository, user_repository
from safewatch.services.errors import ConflictError, NotFoundError, PersistenceError

logger = get_logger(__name__)

RECENT_ACTIVITY_LIMIT = 20


class AdminService:
    def __init__(self, repository: UserRepository = user_repository):
        self.repository = repository

    async def list_users(self) -> list[User]:
        try:
            return await self.repository.list_users()
        except DatabaseError as e:
            raise PersistenceError(f"Error fetching users: {e}") from e

    async def get_user_detail(self, user_id: str) -> User:
        """User with contacts and most recent activity attached."""
        try:
            user = await self.repository.get_user(user_id)
            if user is None:
                raise NotFoundError("User not found", details={"user_id": user_id})

            user.emergency_contacts = await self.repository.list_contacts(user_id)
            user.recent_activity = await self.repository.list_activity(
                user_id, limit=RECENT_ACTIVITY_LIMIT
            )
        except DatabaseError as e:
            raise PersistenceError(f"Error fetching user: {e}") from e

        return user

    async def update_user(self, user_id: str, fields: dict[str, Any]) -> User:
        try:
            user = await self.repository.update_profile(user_id, fields)
        except DatabaseError as e:
            if isinstance(e.__cause__, pg_errors.UniqueViolation):
                raise ConflictError("Email is already in use") from e
            raise PersistenceError(f"Error updating user: {e}") from e

        if user is None:
            raise NotFoundError("User not found", details={"user_id": user_id})

        logger.info("User updated by admin", user_id=user_id, fields=sorted(fields))
        return user

    async def toggle_status(self, user_id: str) -> User:
        try:
            user = await self.repository.toggle_status(user_id)
        except DatabaseError as e:
            raise PersistenceError(f"Error toggling status: {e}") from e

        if user is None:
            raise NotFoundError("User not found", details={"user_id": user_id})

        logger.info("User status toggled", user_id=user_id, status=user.status)
        return user


admin_service = AdminService()
