import asyncio
import uuid
from datetime import UTC, datetime

import pytest

from safewatch.auth.verify import admin_dependency, auth_dependency
from safewatch.db.helpers import DatabaseError
from safewatch.models.domain.user_domain import (
    ActivityEvent,
    ActivityType,
    EmergencyContact,
    LastLocation,
    User,
)
from safewatch.services.notifications.channels import ChannelSendError


@pytest.fixture
def auth_override():
    def _override():
        return {"id": "user-123"}

    return _override


@pytest.fixture
def admin_override():
    def _override():
        return {"id": "admin-1", "role": "admin"}

    return _override


@pytest.fixture
def apply_auth_override(auth_override, admin_override):
    def _apply(app):
        app.dependency_overrides[auth_dependency] = auth_override
        app.dependency_overrides[admin_dependency] = admin_override

    return _apply


class FakeUserRepository:
    """In-memory stand-in for UserRepository with the same async surface."""

    def __init__(self):
        self.users: dict[str, User] = {}
        self.contacts: dict[str, list[EmergencyContact]] = {}
        self.activity: dict[str, list[ActivityEvent]] = {}
        self.admins: dict[str, dict] = {}
        self.fail_location_write = False
        self.fail_reads = False
        self.location_writes = 0

    def add_user(
        self,
        user_id="user-123",
        name="Jane Doe",
        email="jane@example.com",
        phone="+15550100",
        contacts=(),
    ):
        user = User(id=user_id, name=name, email=email, phone=phone)
        self.users[user_id] = user
        self.contacts[user_id] = [
            EmergencyContact(id=f"c{i}", name=f"Contact {i}", email=addr, phone=f"+1555020{i}")
            for i, addr in enumerate(contacts)
        ]
        return user

    def _check_reads(self, operation):
        if self.fail_reads:
            raise DatabaseError("connection refused", operation=operation)

    async def get_user(self, user_id):
        self._check_reads("get_user")
        user = self.users.get(user_id)
        return user.model_copy(deep=True) if user else None

    async def find_by_email_and_phone(self, email, phone):
        self._check_reads("find_by_email_and_phone")
        for user in self.users.values():
            if user.email == email and user.phone == phone:
                return user.model_copy(deep=True)
        return None

    async def list_contacts(self, user_id):
        self._check_reads("list_contacts")
        return list(self.contacts.get(user_id, []))

    async def update_last_location(self, user_id, latitude, longitude, timestamp):
        if self.fail_location_write:
            raise DatabaseError("write timeout", operation="update_last_location")
        user = self.users.get(user_id)
        if user is None:
            return False
        self.location_writes += 1
        user.last_location = LastLocation(
            latitude=latitude, longitude=longitude, timestamp=timestamp
        )
        return True

    async def add_contact(self, user_id, name, phone, email, relationship=None):
        contact = EmergencyContact(
            id=str(uuid.uuid4()), name=name, phone=phone, email=email, relationship=relationship
        )
        self.contacts.setdefault(user_id, []).append(contact)
        return contact

    async def remove_contact(self, user_id, contact_id):
        before = self.contacts.get(user_id, [])
        after = [c for c in before if c.id != contact_id]
        self.contacts[user_id] = after
        return len(before) - len(after)

    async def add_activity(self, user_id, activity_type: ActivityType, details=""):
        self.activity.setdefault(user_id, []).append(
            ActivityEvent(type=activity_type, timestamp=datetime.now(UTC), details=details)
        )

    async def list_activity(self, user_id, limit=50):
        return list(reversed(self.activity.get(user_id, [])))[:limit]

    async def list_users(self):
        users = []
        for user in self.users.values():
            copy = user.model_copy(deep=True)
            copy.emergency_contacts = list(self.contacts.get(user.id, []))
            users.append(copy)
        return users

    async def update_profile(self, user_id, fields):
        user = self.users.get(user_id)
        if user is None:
            return None
        for key, value in fields.items():
            setattr(user, key, value)
        return user.model_copy(deep=True)

    async def toggle_status(self, user_id):
        user = self.users.get(user_id)
        if user is None:
            return None
        user.status = "inactive" if user.status == "active" else "active"
        return user.model_copy(deep=True)

    async def get_admin(self, admin_id):
        return self.admins.get(admin_id)


@pytest.fixture
def fake_repo():
    return FakeUserRepository()


class FakeChannel:
    """Records delivered addresses; fails for the addresses in fail_for."""

    def __init__(self, name="email", fail_for=(), crash_for=(), delay=0.0, slow_for=()):
        self.name = name
        self.fail_for = set(fail_for)
        self.crash_for = set(crash_for)
        self.slow_for = set(slow_for)
        self.delay = delay
        self.sent: list[str] = []

    def _address(self, contact):
        return contact.email if self.name == "email" else contact.phone

    async def send(self, contact, alert):
        address = self._address(contact)
        if self.delay and (not self.slow_for or address in self.slow_for):
            await asyncio.sleep(self.delay)
        if address in self.crash_for:
            raise RuntimeError("provider exploded")
        if address in self.fail_for:
            raise ChannelSendError(self.name, f"rejected {address}")
        self.sent.append(address)


@pytest.fixture
def make_channel():
    return FakeChannel
