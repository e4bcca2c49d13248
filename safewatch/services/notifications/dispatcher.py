"""
Notification dispatcher - fans one SOS alert out to every emergency contact.

Failure isolation:
- Each (contact, channel) send runs inside its own error boundary and timeout.
- A failing channel for one contact never affects another contact, and a
  failing email never prevents the SMS for the same contact.
- Nothing raised by a channel escapes dispatch(); every failure becomes a
  ChannelResult(success=False) on that contact's outcome.

Contacts are notified concurrently. The returned list follows the contact
list's insertion order regardless of completion order.
"""

import asyncio
from collections.abc import Sequence
from datetime import datetime

from safewatch.config import settings
from safewatch.infrastructure.observability.logging import get_logger
from safewatch.models.domain.sos_domain import ChannelResult, ContactOutcome, Coordinate
from safewatch.models.domain.user_domain import EmergencyContact, User
from safewatch.services.notifications.channels import (
    ChannelSendError,
    EmailChannel,
    NotificationChannel,
    SmsChannel,
)
from safewatch.services.notifications.templates import SosAlert

logger = get_logger(__name__)

DEADLINE_EXCEEDED = "deadline_exceeded"


class NotificationDispatcher:
    def __init__(
        self,
        channels: Sequence[NotificationChannel],
        send_timeout: float = 5.0,
        map_base_url: str = "https://www.google.com/maps",
    ):
        if not channels:
            raise ValueError("NotificationDispatcher needs at least one channel")
        self.channels = list(channels)
        self.send_timeout = send_timeout
        self.map_base_url = map_base_url

    async def dispatch(
        self,
        user: User,
        contacts: Sequence[EmergencyContact],
        coordinate: Coordinate,
        reported_at: datetime,
        deadline: float | None = None,
    ) -> list[ContactOutcome]:
        """
        Notify every contact on every channel.

        Args:
            user: User who triggered the SOS
            contacts: Contacts to notify, in insertion order
            coordinate: Reported coordinate for the map link
            reported_at: Report timestamp shown in the message
            deadline: Overall soft deadline in seconds; channels without a
                result when it passes are reported as failed, channels that
                already finished keep their result

        Returns:
            One ContactOutcome per contact, same order as `contacts`
        """
        if not contacts:
            return []

        alert = SosAlert.build(user, coordinate, reported_at, self.map_base_url)
        outcomes = [
            ContactOutcome(contact_id=c.id, contact_name=c.name, contact_email=c.email)
            for c in contacts
        ]
        tasks = [
            asyncio.create_task(self._notify_contact(contact, alert, outcome))
            for contact, outcome in zip(contacts, outcomes)
        ]

        try:
            _, pending = await asyncio.wait(tasks, timeout=deadline)
        except asyncio.CancelledError:
            # Sends die with the request; nothing is left running unobserved
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.warning("SOS dispatch cancelled, pending sends cancelled", user_id=user.id)
            raise

        if pending:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning(
                "SOS dispatch deadline exceeded",
                user_id=user.id,
                deadline_seconds=deadline,
                pending_contacts=len(pending),
            )

        for outcome in outcomes:
            finished = {result.channel for result in outcome.channels}
            for channel in self.channels:
                if channel.name not in finished:
                    outcome.channels.append(
                        ChannelResult(channel=channel.name, success=False, error=DEADLINE_EXCEEDED)
                    )

        return outcomes

    async def _notify_contact(
        self, contact: EmergencyContact, alert: SosAlert, outcome: ContactOutcome
    ) -> None:
        for channel in self.channels:
            result = await self._send_one(channel, contact, alert)
            outcome.channels.append(result)

            if not result.success:
                logger.warning(
                    "Failed to send alert to contact",
                    channel=channel.name,
                    contact_id=contact.id,
                    contact_email=contact.email,
                    error=result.error,
                )

    async def _send_one(
        self, channel: NotificationChannel, contact: EmergencyContact, alert: SosAlert
    ) -> ChannelResult:
        try:
            await asyncio.wait_for(channel.send(contact, alert), timeout=self.send_timeout)
        except TimeoutError:
            return ChannelResult(
                channel=channel.name,
                success=False,
                error=f"timed out after {self.send_timeout}s",
            )
        except ChannelSendError as e:
            return ChannelResult(channel=channel.name, success=False, error=str(e))
        except Exception as e:
            # Provider SDK bugs and the like still count as a per-contact failure
            logger.exception("Unexpected channel error", channel=channel.name, contact_id=contact.id)
            return ChannelResult(
                channel=channel.name, success=False, error=f"{type(e).__name__}: {e}"
            )

        return ChannelResult(channel=channel.name, success=True)


def build_default_dispatcher() -> NotificationDispatcher:
    """Email always; SMS only when enabled and fully configured."""
    channels: list[NotificationChannel] = [
        EmailChannel(
            api_url=settings.EMAIL_API_URL,
            api_key=settings.EMAIL_API_KEY,
            sender_address=settings.EMAIL_SENDER_ADDRESS,
            sender_name=settings.EMAIL_SENDER_NAME,
        )
    ]

    if settings.sms_configured():
        channels.append(
            SmsChannel(
                account_sid=settings.TWILIO_ACCOUNT_SID,
                auth_token=settings.TWILIO_AUTH_TOKEN,
                from_number=settings.TWILIO_PHONE_NUMBER,
            )
        )
    elif settings.SMS_ENABLED:
        logger.warning("SMS_ENABLED is set but Twilio credentials are incomplete; SMS disabled")

    return NotificationDispatcher(
        channels,
        send_timeout=settings.NOTIFICATION_SEND_TIMEOUT_SECONDS,
        map_base_url=settings.MAP_BASE_URL,
    )
