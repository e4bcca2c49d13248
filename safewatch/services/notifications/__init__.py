"""SOS notification fan-out: channels, message templates and the dispatcher."""

from safewatch.services.notifications.channels import (
    ChannelSendError,
    EmailChannel,
    NotificationChannel,
    SmsChannel,
)
from safewatch.services.notifications.dispatcher import (
    NotificationDispatcher,
    build_default_dispatcher,
)
from safewatch.services.notifications.templates import SosAlert, build_map_link

__all__ = [
    "ChannelSendError",
    "EmailChannel",
    "NotificationChannel",
    "NotificationDispatcher",
    "SmsChannel",
    "SosAlert",
    "build_default_dispatcher",
    "build_map_link",
]
