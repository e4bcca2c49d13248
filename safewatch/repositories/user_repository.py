"""
Persistence helpers for users, their emergency contacts and activity log.

All methods raise DatabaseError on store failures. Ids that are not valid UUIDs
are treated as unknown rather than passed to Postgres.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from safewatch.db.helpers import execute_query, fetch_all, fetch_one, with_db_retry
from safewatch.infrastructure.observability.logging import get_logger
from safewatch.models.domain.user_domain import (
    ActivityEvent,
    ActivityType,
    EmergencyContact,
    LastLocation,
    User,
)

logger = get_logger(__name__)

USER_COLUMNS = """
    id, name, email, phone, address, avatar, status, last_active,
    last_latitude, last_longitude, last_location_at, created_at, updated_at
"""

UPDATABLE_PROFILE_FIELDS = ("name", "email", "phone", "address")


def _parse_uuid(value: str | None) -> str | None:
    try:
        return str(UUID(str(value)))
    except (TypeError, ValueError):
        return None


def _row_to_user(row: dict[str, Any]) -> User:
    last_location = None
    if row.get("last_location_at") is not None:
        last_location = LastLocation(
            latitude=row["last_latitude"],
            longitude=row["last_longitude"],
            timestamp=row["last_location_at"],
        )

    return User(
        id=str(row["id"]),
        name=row["name"],
        email=row["email"],
        phone=row["phone"],
        address=row.get("address"),
        avatar=row.get("avatar") or "",
        status=row.get("status") or "active",
        last_active=row.get("last_active"),
        last_location=last_location,
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


def _row_to_contact(row: dict[str, Any]) -> EmergencyContact:
    return EmergencyContact(
        id=str(row["id"]),
        name=row.get("name"),
        phone=row.get("phone"),
        email=row.get("email"),
        relationship=row.get("relationship"),
    )


class UserRepository:
    """Persistence helpers for the User aggregate."""

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def get_user(self, user_id: str) -> User | None:
        uid = _parse_uuid(user_id)
        if uid is None:
            return None

        row = await fetch_one(f"SELECT {USER_COLUMNS} FROM users WHERE id = %s", (uid,))
        return _row_to_user(row) if row else None

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def find_by_email_and_phone(self, email: str, phone: str) -> User | None:
        row = await fetch_one(
            f"SELECT {USER_COLUMNS} FROM users WHERE email = %s AND phone = %s",
            (email, phone),
        )
        return _row_to_user(row) if row else None

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def list_contacts(self, user_id: str) -> list[EmergencyContact]:
        uid = _parse_uuid(user_id)
        if uid is None:
            return []

        rows = await fetch_all(
            """
            SELECT id, name, phone, email, relationship
            FROM emergency_contacts
            WHERE user_id = %s
            ORDER BY position ASC
            """,
            (uid,),
        )
        return [_row_to_contact(row) for row in rows]

    async def update_last_location(
        self, user_id: str, latitude: float, longitude: float, timestamp: datetime
    ) -> bool:
        """Overwrite the stored location. Returns False when the user does not exist."""
        uid = _parse_uuid(user_id)
        if uid is None:
            return False

        updated = await execute_query(
            """
            UPDATE users
            SET last_latitude = %s,
                last_longitude = %s,
                last_location_at = %s,
                updated_at = NOW()
            WHERE id = %s
            """,
            (latitude, longitude, timestamp, uid),
        )
        return updated > 0

    async def add_contact(
        self,
        user_id: str,
        name: str | None,
        phone: str | None,
        email: str | None,
        relationship: str | None = None,
    ) -> EmergencyContact:
        row = await fetch_one(
            """
            INSERT INTO emergency_contacts (user_id, name, phone, email, relationship)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING id, name, phone, email, relationship
            """,
            (_parse_uuid(user_id), name, phone, email, relationship),
        )
        contact = _row_to_contact(row)
        logger.info("Emergency contact stored", user_id=user_id, contact_id=contact.id)
        return contact

    async def remove_contact(self, user_id: str, contact_id: str) -> int:
        uid = _parse_uuid(user_id)
        cid = _parse_uuid(contact_id)
        if uid is None or cid is None:
            return 0

        return await execute_query(
            "DELETE FROM emergency_contacts WHERE user_id = %s AND id = %s",
            (uid, cid),
        )

    async def add_activity(
        self, user_id: str, activity_type: ActivityType, details: str = ""
    ) -> None:
        await execute_query(
            "INSERT INTO user_activity (user_id, type, details) VALUES (%s, %s, %s)",
            (_parse_uuid(user_id), activity_type.value, details),
        )

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def list_activity(self, user_id: str, limit: int = 50) -> list[ActivityEvent]:
        uid = _parse_uuid(user_id)
        if uid is None:
            return []

        rows = await fetch_all(
            """
            SELECT type, details, created_at
            FROM user_activity
            WHERE user_id = %s
            ORDER BY created_at DESC
            LIMIT %s
            """,
            (uid, limit),
        )
        return [
            ActivityEvent(type=row["type"], details=row["details"], timestamp=row["created_at"])
            for row in rows
        ]

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def list_users(self) -> list[User]:
        """All users newest first, each with its contacts attached."""
        rows = await fetch_all(f"SELECT {USER_COLUMNS} FROM users ORDER BY created_at DESC")
        users = [_row_to_user(row) for row in rows]
        if not users:
            return users

        contact_rows = await fetch_all(
            """
            SELECT user_id, id, name, phone, email, relationship
            FROM emergency_contacts
            WHERE user_id = ANY(%s)
            ORDER BY position ASC
            """,
            ([UUID(user.id) for user in users],),
        )
        by_user: dict[str, list[EmergencyContact]] = {}
        for row in contact_rows:
            by_user.setdefault(str(row["user_id"]), []).append(_row_to_contact(row))

        for user in users:
            user.emergency_contacts = by_user.get(user.id, [])
        return users

    async def update_profile(self, user_id: str, fields: dict[str, Any]) -> User | None:
        uid = _parse_uuid(user_id)
        if uid is None:
            return None

        updates = {k: v for k, v in fields.items() if k in UPDATABLE_PROFILE_FIELDS}
        if not updates:
            return await self.get_user(user_id)

        assignments = ", ".join(f"{column} = %s" for column in updates)
        row = await fetch_one(
            f"""
            UPDATE users
            SET {assignments}, updated_at = NOW()
            WHERE id = %s
            RETURNING {USER_COLUMNS}
            """,
            (*updates.values(), uid),
        )
        return _row_to_user(row) if row else None

    async def toggle_status(self, user_id: str) -> User | None:
        uid = _parse_uuid(user_id)
        if uid is None:
            return None

        row = await fetch_one(
            f"""
            UPDATE users
            SET status = CASE WHEN status = 'active' THEN 'inactive' ELSE 'active' END,
                updated_at = NOW()
            WHERE id = %s
            RETURNING {USER_COLUMNS}
            """,
            (uid,),
        )
        return _row_to_user(row) if row else None

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def get_admin(self, admin_id: str) -> dict[str, Any] | None:
        aid = _parse_uuid(admin_id)
        if aid is None:
            return None

        return await fetch_one(
            "SELECT id, username, email, role FROM admins WHERE id = %s",
            (aid,),
        )


user_repository = UserRepository()
