"""
Tests for the SOS orchestrator.
"""

import pytest

from safewatch.middleware.rate_limiter import InMemoryWindowStore, RateLimiter
from safewatch.models.domain.sos_domain import Coordinate, SosStage
from safewatch.models.domain.user_domain import ActivityType
from safewatch.services.errors import (
    NoContactsError,
    NotFoundError,
    PersistenceError,
    RateLimitedError,
)
from safewatch.services.notifications.dispatcher import NotificationDispatcher
from safewatch.services.sos_service import SosService

COORD = Coordinate(latitude=40.7128, longitude=-74.006)
EMAIL = "jane@example.com"
PHONE = "+15550100"


def build_service(repo, channel, rate_limiter=None):
    return SosService(
        repository=repo,
        dispatcher=NotificationDispatcher([channel]),
        rate_limiter=rate_limiter,
    )


@pytest.mark.asyncio
async def test_successful_sos_notifies_every_contact(fake_repo, make_channel):
    fake_repo.add_user(contacts=("a@x.com", "b@x.com"))
    channel = make_channel("email")
    service = build_service(fake_repo, channel)

    outcome = await service.trigger(EMAIL, PHONE, COORD, origin_key="ip:1")

    assert outcome.stage == SosStage.COMPLETED
    assert outcome.stage_history == [
        SosStage.RECEIVED,
        SosStage.RATE_LIMIT_CHECKED,
        SosStage.USER_RESOLVED,
        SosStage.CONTACTS_VALIDATED,
        SosStage.LOCATION_PERSISTED,
        SosStage.DISPATCHING,
        SosStage.COMPLETED,
    ]
    assert len(outcome.succeeded) == 2
    assert outcome.location_saved is True
    assert fake_repo.users["user-123"].last_location.latitude == 40.7128


@pytest.mark.asyncio
async def test_partial_failure_still_completes(fake_repo, make_channel):
    fake_repo.add_user(contacts=("a@x.com", "b@x.com"))
    channel = make_channel("email", fail_for={"a@x.com"})
    service = build_service(fake_repo, channel)

    outcome = await service.trigger(EMAIL, PHONE, COORD, origin_key="ip:1")

    assert outcome.stage == SosStage.COMPLETED
    assert [o.contact_email for o in outcome.failed] == ["a@x.com"]
    assert [o.contact_email for o in outcome.succeeded] == ["b@x.com"]
    assert channel.sent == ["b@x.com"]


@pytest.mark.asyncio
async def test_m_of_n_failures_counted(fake_repo, make_channel):
    emails = [f"c{i}@x.com" for i in range(6)]
    fake_repo.add_user(contacts=emails)
    channel = make_channel("email", fail_for={"c1@x.com", "c3@x.com", "c4@x.com"})
    service = build_service(fake_repo, channel)

    outcome = await service.trigger(EMAIL, PHONE, COORD, origin_key="ip:1")

    assert len(outcome.outcomes) == 6
    assert len(outcome.failed) == 3
    assert len(outcome.succeeded) == 3


@pytest.mark.asyncio
async def test_all_contacts_failing_is_not_an_error(fake_repo, make_channel):
    fake_repo.add_user(contacts=("a@x.com",))
    service = build_service(fake_repo, make_channel("email", fail_for={"a@x.com"}))

    outcome = await service.trigger(EMAIL, PHONE, COORD, origin_key=None)

    assert outcome.stage == SosStage.COMPLETED
    assert len(outcome.failed) == 1


@pytest.mark.asyncio
async def test_no_contacts_rejects_without_side_effects(fake_repo, make_channel):
    fake_repo.add_user(contacts=())
    channel = make_channel("email")
    service = build_service(fake_repo, channel)

    with pytest.raises(NoContactsError) as exc:
        await service.trigger(EMAIL, PHONE, COORD, origin_key="ip:1")

    assert exc.value.stage_history == [
        SosStage.RECEIVED,
        SosStage.RATE_LIMIT_CHECKED,
        SosStage.USER_RESOLVED,
        SosStage.FAILED,
    ]
    assert fake_repo.location_writes == 0
    assert fake_repo.users["user-123"].last_location is None
    assert channel.sent == []


@pytest.mark.asyncio
async def test_unknown_user_rejected(fake_repo, make_channel):
    fake_repo.add_user(contacts=("a@x.com",))
    channel = make_channel("email")
    service = build_service(fake_repo, channel)

    with pytest.raises(NotFoundError) as exc:
        await service.trigger(EMAIL, "+19999999", COORD, origin_key="ip:1")

    assert channel.sent == []
    assert exc.value.stage_history[-1] == SosStage.FAILED
    assert SosStage.USER_RESOLVED not in exc.value.stage_history


@pytest.mark.asyncio
async def test_location_write_failure_still_dispatches(fake_repo, make_channel):
    fake_repo.add_user(contacts=("a@x.com",))
    fake_repo.fail_location_write = True
    channel = make_channel("email")
    service = build_service(fake_repo, channel)

    outcome = await service.trigger(EMAIL, PHONE, COORD, origin_key="ip:1")

    assert outcome.location_saved is False
    assert outcome.location_error
    assert SosStage.LOCATION_PERSISTED not in outcome.stage_history
    assert channel.sent == ["a@x.com"]


@pytest.mark.asyncio
async def test_user_lookup_failure_is_persistence_error(fake_repo, make_channel):
    fake_repo.add_user(contacts=("a@x.com",))
    fake_repo.fail_reads = True
    service = build_service(fake_repo, make_channel("email"))

    with pytest.raises(PersistenceError):
        await service.trigger(EMAIL, PHONE, COORD, origin_key="ip:1")


@pytest.mark.asyncio
async def test_fourth_sos_from_same_origin_rate_limited(fake_repo, make_channel):
    fake_repo.add_user(contacts=("a@x.com",))
    channel = make_channel("email")
    limiter = RateLimiter(InMemoryWindowStore(), limit=3, window_seconds=900)
    service = build_service(fake_repo, channel, rate_limiter=limiter)

    for _ in range(3):
        await service.trigger(EMAIL, PHONE, COORD, origin_key="ip:1")

    with pytest.raises(RateLimitedError) as exc:
        await service.trigger(EMAIL, PHONE, COORD, origin_key="ip:1")

    assert exc.value.retry_after > 0
    assert len(channel.sent) == 3

    outcome = await service.trigger(EMAIL, PHONE, COORD, origin_key="ip:2")
    assert outcome.rate_limit_info["remaining"] == 2


@pytest.mark.asyncio
async def test_rate_limited_request_touches_nothing(fake_repo, make_channel):
    fake_repo.add_user(contacts=("a@x.com",))
    limiter = RateLimiter(InMemoryWindowStore(), limit=0, window_seconds=900)
    service = build_service(fake_repo, make_channel("email"), rate_limiter=limiter)

    with pytest.raises(RateLimitedError):
        await service.trigger(EMAIL, PHONE, COORD, origin_key="ip:1")

    assert fake_repo.location_writes == 0


@pytest.mark.asyncio
async def test_sos_activity_recorded(fake_repo, make_channel):
    fake_repo.add_user(contacts=("a@x.com", "b@x.com"))
    service = build_service(fake_repo, make_channel("email", fail_for={"b@x.com"}))

    await service.trigger(EMAIL, PHONE, COORD, origin_key=None)

    events = fake_repo.activity["user-123"]
    assert events[0].type == ActivityType.SOS_ALERT
    assert events[0].details == "SOS alert sent to 1 of 2 contacts"
