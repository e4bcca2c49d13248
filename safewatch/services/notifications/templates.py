"""
Message composition for SOS alerts.

Every channel renders from the same SosAlert so the contact sees the same facts
(name, map link, time, callback number) whichever transport delivers it.
"""

from dataclasses import dataclass
from datetime import datetime
from html import escape

from safewatch.models.domain.sos_domain import Coordinate
from safewatch.models.domain.user_domain import User

EMAIL_SUBJECT = "SOS Alert"


@dataclass(frozen=True)
class SosAlert:
    user_name: str
    user_phone: str
    coordinate: Coordinate
    reported_at: datetime
    map_link: str

    @classmethod
    def build(
        cls, user: User, coordinate: Coordinate, reported_at: datetime, map_base_url: str
    ) -> "SosAlert":
        return cls(
            user_name=user.name,
            user_phone=user.phone,
            coordinate=coordinate,
            reported_at=reported_at,
            map_link=build_map_link(coordinate, map_base_url),
        )


def build_map_link(coordinate: Coordinate, map_base_url: str = "https://www.google.com/maps") -> str:
    return f"{map_base_url.rstrip('/')}?q={coordinate.as_query()}"


def format_timestamp(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


def render_sms_text(alert: SosAlert) -> str:
    return f"EMERGENCY: {alert.user_name} needs help! Current location: {alert.map_link}"


def render_email_html(alert: SosAlert) -> str:
    name = escape(alert.user_name)
    phone = escape(alert.user_phone)
    link = escape(alert.map_link, quote=True)
    reported = escape(format_timestamp(alert.reported_at))

    return f"""
<div style="max-width: 600px; margin: 0 auto; font-family: Arial, sans-serif; border: 3px solid #ff0000; border-radius: 10px; overflow: hidden;">
    <div style="background: #cc0000; color: white; padding: 25px; text-align: center;">
        <h1 style="margin: 0; font-size: 30px; text-transform: uppercase; letter-spacing: 2px;">
            &#128680; Emergency Alert &#128680;
        </h1>
    </div>

    <div style="padding: 30px; background-color: #fff;">
        <div style="background-color: #fff4f4; padding: 20px; border-radius: 10px; margin-bottom: 25px; border-left: 5px solid #ff0000;">
            <h2 style="color: #ff0000; margin: 0 0 15px 0; font-size: 22px;">URGENT: Immediate Response Required</h2>
            <p style="font-size: 20px; margin: 0; color: #333; font-weight: bold;">{name} needs immediate assistance!</p>
        </div>

        <div style="background: #f8f9fa; padding: 20px; border-radius: 10px; margin-bottom: 25px; border: 1px solid #dee2e6;">
            <h3 style="color: #333; margin: 0 0 15px 0; font-size: 18px;">Location Details</h3>
            <a href="{link}" style="background: #007bff; color: white; padding: 12px 25px; text-decoration: none; border-radius: 25px; display: inline-block; font-weight: bold;">
                View on Google Maps
            </a>
            <p style="margin: 10px 0 0 0; color: #666; font-size: 14px;">Time Reported: {reported}</p>
        </div>

        <div style="background: #f8f9fa; padding: 20px; border-radius: 10px; margin-bottom: 25px; border: 1px solid #dee2e6;">
            <h3 style="color: #333; margin: 0 0 15px 0; font-size: 18px;">Contact Information</h3>
            <p style="margin: 5px 0; font-size: 16px;"><strong>Phone:</strong> {phone}</p>
        </div>

        <p style="color: #ff0000; font-weight: bold; text-align: center; font-size: 18px;">
            Please take immediate action and contact emergency services if necessary!
        </p>
    </div>

    <div style="background: #f1f1f1; padding: 15px; text-align: center; font-size: 12px; color: #666;">
        This is an automated emergency alert. Please do not reply to this email.
    </div>
</div>
"""
