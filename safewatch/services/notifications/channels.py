"""
Notification channels for SOS alerts.

A channel delivers one message to one contact and raises ChannelSendError on
any failure. Channels never retry: an emergency alert that is late is handled
by the dispatcher's timeout, not by backing off.

Providers:
- EmailChannel: Brevo-compatible transactional email API (POST /v3/smtp/email)
- SmsChannel: Twilio Messages REST API
"""

from typing import Protocol, runtime_checkable

import httpx

from safewatch.infrastructure.observability.logging import get_logger
from safewatch.models.domain.user_domain import EmergencyContact
from safewatch.services.notifications.templates import (
    EMAIL_SUBJECT,
    SosAlert,
    render_email_html,
    render_sms_text,
)

logger = get_logger(__name__)

TWILIO_API_BASE_URL = "https://api.twilio.com/2010-04-01"
REQUEST_TIMEOUT = 10  # seconds, upper bound; the dispatcher usually cuts sooner


class ChannelSendError(Exception):
    """A single send on a single channel failed. Never fatal to the SOS request."""

    def __init__(self, channel: str, message: str, status_code: int | None = None):
        super().__init__(message)
        self.channel = channel
        self.status_code = status_code


@runtime_checkable
class NotificationChannel(Protocol):
    name: str

    async def send(self, contact: EmergencyContact, alert: SosAlert) -> None: ...


class EmailChannel:
    """Sends the HTML alert through a transactional email HTTP API."""

    name = "email"

    def __init__(
        self,
        api_url: str,
        api_key: str | None,
        sender_address: str,
        sender_name: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.sender_address = sender_address
        self.sender_name = sender_name
        self._transport = transport

    async def send(self, contact: EmergencyContact, alert: SosAlert) -> None:
        if not contact.email:
            raise ChannelSendError(self.name, "contact has no email address")

        payload = {
            "sender": {"name": self.sender_name, "email": self.sender_address},
            "to": [{"email": contact.email, "name": contact.name or contact.email}],
            "subject": EMAIL_SUBJECT,
            "htmlContent": render_email_html(alert),
        }
        headers = {
            "api-key": self.api_key or "",
            "accept": "application/json",
            "content-type": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT, transport=self._transport) as client:
                response = await client.post(self.api_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise ChannelSendError(self.name, f"{type(e).__name__}: {e}") from e

        if response.status_code >= 400:
            raise ChannelSendError(
                self.name,
                f"email API returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        logger.debug("Alert email accepted", contact_email=contact.email)


class SmsChannel:
    """Sends the condensed text alert through Twilio."""

    name = "sms"

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self._transport = transport

    @property
    def messages_url(self) -> str:
        return f"{TWILIO_API_BASE_URL}/Accounts/{self.account_sid}/Messages.json"

    async def send(self, contact: EmergencyContact, alert: SosAlert) -> None:
        if not contact.phone:
            raise ChannelSendError(self.name, "contact has no phone number")

        data = {"To": contact.phone, "From": self.from_number, "Body": render_sms_text(alert)}

        try:
            async with httpx.AsyncClient(
                timeout=REQUEST_TIMEOUT,
                transport=self._transport,
                auth=(self.account_sid, self.auth_token),
            ) as client:
                response = await client.post(self.messages_url, data=data)
        except httpx.HTTPError as e:
            raise ChannelSendError(self.name, f"{type(e).__name__}: {e}") from e

        if response.status_code >= 400:
            raise ChannelSendError(
                self.name,
                f"Twilio returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        logger.debug("Alert SMS accepted", contact_phone_suffix=contact.phone[-4:])
