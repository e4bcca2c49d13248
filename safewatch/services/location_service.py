"""
Location tracker: keeps only the most recent coordinate per user.

Coordinates are stored as reported. Out-of-range latitude/longitude values are
accepted without validation.
"""

from datetime import UTC, datetime

from safewatch.db.helpers import DatabaseError
from safewatch.infrastructure.observability.logging import get_logger
from safewatch.models.domain.user_domain import LastLocation
from safewatch.repositories.user_repository import UserRepository, user_repository
from safewatch.services.errors import NotFoundError, PersistenceError

logger = get_logger(__name__)


class LocationService:
    def __init__(self, repository: UserRepository = user_repository):
        self.repository = repository

    async def record_location(self, user_id: str, latitude: float, longitude: float) -> LastLocation:
        """
        Overwrite the user's last location with the given coordinate and now().

        Raises:
            NotFoundError: user id does not resolve
            PersistenceError: the write failed; the location may not be saved
        """
        snapshot = LastLocation(latitude=latitude, longitude=longitude, timestamp=datetime.now(UTC))

        try:
            updated = await self.repository.update_last_location(
                user_id, snapshot.latitude, snapshot.longitude, snapshot.timestamp
            )
        except DatabaseError as e:
            logger.error("Location write failed", user_id=user_id, error=str(e))
            raise PersistenceError(f"Could not save location: {e}") from e

        if not updated:
            raise NotFoundError("User not found", details={"user_id": user_id})

        logger.info("Location updated", user_id=user_id)
        return snapshot

    async def get_last_location(self, user_id: str) -> LastLocation | None:
        try:
            user = await self.repository.get_user(user_id)
        except DatabaseError as e:
            raise PersistenceError(f"Could not load location: {e}") from e

        if user is None:
            raise NotFoundError("User not found", details={"user_id": user_id})

        return user.last_location


location_service = LocationService()
