"""
SOS orchestrator.

Drives one SOS event through:

    RECEIVED -> RATE_LIMIT_CHECKED -> USER_RESOLVED -> CONTACTS_VALIDATED
             -> LOCATION_PERSISTED -> DISPATCHING -> COMPLETED

Request-terminal failures (raised, nothing mutated):
    RateLimitedError, NotFoundError, NoContactsError, PersistenceError while
    resolving the user or loading contacts.

Non-terminal failures (recorded on the outcome):
    PersistenceError on the location write. The alert still goes out; getting
    help to the contacts matters more than the stored coordinate.
    Per-contact channel failures, including a fully failed fan-out.
"""

from datetime import UTC, datetime

from safewatch.config import settings
from safewatch.db.helpers import DatabaseError
from safewatch.infrastructure.observability.logging import get_logger
from safewatch.middleware.rate_limiter import RateLimiter, sos_rate_limiter
from safewatch.models.domain.sos_domain import Coordinate, SosEvent, SosOutcome, SosStage
from safewatch.models.domain.user_domain import ActivityType
from safewatch.repositories.user_repository import UserRepository, user_repository
from safewatch.services.errors import (
    NoContactsError,
    NotFoundError,
    PersistenceError,
    RateLimitedError,
    ServiceError,
)
from safewatch.services.location_service import LocationService
from safewatch.services.notifications.dispatcher import (
    NotificationDispatcher,
    build_default_dispatcher,
)

logger = get_logger(__name__)


class SosService:
    def __init__(
        self,
        repository: UserRepository = user_repository,
        dispatcher: NotificationDispatcher | None = None,
        rate_limiter: RateLimiter | None = None,
        location_service: LocationService | None = None,
        dispatch_deadline: float | None = None,
    ):
        self.repository = repository
        self.dispatcher = dispatcher or build_default_dispatcher()
        self.rate_limiter = rate_limiter
        self.location_service = location_service or LocationService(repository)
        self.dispatch_deadline = dispatch_deadline

    async def trigger(
        self, email: str, phone: str, coordinate: Coordinate, origin_key: str | None
    ) -> SosOutcome:
        """
        Run one SOS event end to end.

        Args:
            email: Email of the user raising the alert
            phone: Phone of the user raising the alert (matched together with email)
            coordinate: Live coordinate reported by the client
            origin_key: Rate limit partition key (client IP); None skips the check

        Returns:
            SosOutcome in the COMPLETED stage with one outcome per contact

        Raises:
            RateLimitedError, NotFoundError, NoContactsError, PersistenceError
        """
        history = [SosStage.RECEIVED]
        try:
            return await self._run(email, phone, coordinate, origin_key, history)
        except ServiceError as e:
            history.append(SosStage.FAILED)
            e.stage_history = list(history)
            logger.info(
                "SOS request failed",
                reason=e.error_code,
                stage_history=[stage.value for stage in history],
            )
            raise

    async def _run(
        self,
        email: str,
        phone: str,
        coordinate: Coordinate,
        origin_key: str | None,
        history: list[SosStage],
    ) -> SosOutcome:
        rate_limit_info = await self._check_rate_limit(origin_key, history)

        user = await self._resolve_user(email, phone, history)
        contacts = await self._load_contacts(user.id, history)

        location_saved = True
        location_error = None
        reported_at = datetime.now(UTC)
        try:
            snapshot = await self.location_service.record_location(
                user.id, coordinate.latitude, coordinate.longitude
            )
            reported_at = snapshot.timestamp
            history.append(SosStage.LOCATION_PERSISTED)
        except (PersistenceError, NotFoundError) as e:
            location_saved = False
            location_error = e.message
            logger.error(
                "SOS location write failed, continuing with dispatch",
                user_id=user.id,
                error=e.message,
            )

        event = SosEvent(
            user_id=user.id,
            coordinate=coordinate,
            reported_at=reported_at,
            contacts=contacts,
        )

        history.append(SosStage.DISPATCHING)
        outcomes = await self.dispatcher.dispatch(
            user,
            contacts,
            coordinate,
            reported_at,
            deadline=self.dispatch_deadline,
        )
        history.append(SosStage.COMPLETED)

        outcome = SosOutcome(
            event=event,
            stage=SosStage.COMPLETED,
            stage_history=history,
            location_saved=location_saved,
            location_error=location_error,
            outcomes=outcomes,
            rate_limit_info=rate_limit_info,
        )

        logger.info(
            "SOS dispatch completed",
            user_id=user.id,
            contacts=len(outcomes),
            succeeded=len(outcome.succeeded),
            failed=len(outcome.failed),
            failed_contacts=[o.contact_email or o.contact_id for o in outcome.failed],
            location_saved=location_saved,
        )

        await self._record_activity(user.id, outcome)
        return outcome

    async def _check_rate_limit(self, origin_key: str | None, history: list[SosStage]) -> dict | None:
        if self.rate_limiter is None or not origin_key:
            if self.rate_limiter is not None:
                logger.warning("SOS rate limit check skipped - no client origin")
            history.append(SosStage.RATE_LIMIT_CHECKED)
            return None

        allowed, info = await self.rate_limiter.admit(origin_key)
        if not allowed:
            raise RateLimitedError("Too many SOS requests, please try again later", info)

        history.append(SosStage.RATE_LIMIT_CHECKED)
        return info

    async def _resolve_user(self, email: str, phone: str, history: list[SosStage]):
        try:
            user = await self.repository.find_by_email_and_phone(email, phone)
        except DatabaseError as e:
            raise PersistenceError(f"Could not resolve user: {e}") from e

        if user is None:
            logger.info("SOS rejected, no user matches email and phone")
            raise NotFoundError("User not found")

        history.append(SosStage.USER_RESOLVED)
        return user

    async def _load_contacts(self, user_id: str, history: list[SosStage]):
        try:
            contacts = await self.repository.list_contacts(user_id)
        except DatabaseError as e:
            raise PersistenceError(f"Could not load contacts: {e}") from e

        if not contacts:
            logger.info("SOS rejected, user has no emergency contacts", user_id=user_id)
            raise NoContactsError("No emergency contacts found", details={"user_id": user_id})

        history.append(SosStage.CONTACTS_VALIDATED)
        return contacts

    async def _record_activity(self, user_id: str, outcome: SosOutcome) -> None:
        details = (
            f"SOS alert sent to {len(outcome.succeeded)} of {len(outcome.outcomes)} contacts"
        )
        try:
            await self.repository.add_activity(user_id, ActivityType.SOS_ALERT, details)
        except DatabaseError as e:
            logger.warning("Failed to record SOS activity", user_id=user_id, error=str(e))


def build_sos_service() -> SosService:
    return SosService(
        repository=user_repository,
        rate_limiter=sos_rate_limiter if settings.RATE_LIMIT_ENABLED else None,
        dispatch_deadline=settings.SOS_DISPATCH_DEADLINE_SECONDS,
    )


sos_service = build_sos_service()
