"""
Emergency contact management for a single user.
"""

from safewatch.db.helpers import DatabaseError
from safewatch.infrastructure.observability.logging import get_logger
from safewatch.models.domain.user_domain import EmergencyContact
from safewatch.repositories.user_repository import UserRepository, user_repository
from safewatch.services.errors import NotFoundError, PersistenceError

logger = get_logger(__name__)


class ContactService:
    def __init__(self, repository: UserRepository = user_repository):
        self.repository = repository

    async def _require_user(self, user_id: str) -> None:
        try:
            user = await self.repository.get_user(user_id)
        except DatabaseError as e:
            raise PersistenceError(f"Could not load user: {e}") from e
        if user is None:
            raise NotFoundError("User not found", details={"user_id": user_id})

    async def list_contacts(self, user_id: str) -> list[EmergencyContact]:
        await self._require_user(user_id)
        try:
            return await self.repository.list_contacts(user_id)
        except DatabaseError as e:
            raise PersistenceError(f"Could not load contacts: {e}") from e

    async def add_contact(
        self,
        user_id: str,
        name: str | None,
        phone: str | None,
        email: str | None,
        relationship: str | None = None,
    ) -> EmergencyContact:
        """Append a contact. The email is stored as given and only checked at send time."""
        await self._require_user(user_id)
        try:
            return await self.repository.add_contact(user_id, name, phone, email, relationship)
        except DatabaseError as e:
            raise PersistenceError(f"Could not add contact: {e}") from e

    async def remove_contact(self, user_id: str, contact_id: str) -> bool:
        """
        Remove a contact by id. An id that is not in the list is a no-op.

        Returns:
            True if a contact was removed
        """
        await self._require_user(user_id)
        try:
            removed = await self.repository.remove_contact(user_id, contact_id)
        except DatabaseError as e:
            raise PersistenceError(f"Could not remove contact: {e}") from e

        if not removed:
            logger.info("Contact not in list, nothing removed", user_id=user_id, contact_id=contact_id)
        return removed > 0


contact_service = ContactService()
