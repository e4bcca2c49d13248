"""
RequestContext middleware - per-request id and client IP.

Sets on request.state:
- request_id: UUID echoed back in the X-Request-ID response header
- ip_address: client IP, also the origin key of the SOS rate limiter

rate_limit_info is the only other request.state attribute; the SOS route sets it.
"""

import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from safewatch.config import settings
from safewatch.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


def extract_client_ip(request: Request) -> str | None:
    """
    Client IP with proxy spoofing protection.

    X-Forwarded-For is honoured only when TRUST_X_FORWARDED_FOR is on and the
    direct peer is listed in TRUSTED_PROXY_IPS. Otherwise a client could pick
    its own rate limit key.
    """
    direct_ip = request.client.host if request.client else None

    if not settings.TRUST_X_FORWARDED_FOR or direct_ip not in settings.TRUSTED_PROXY_IPS:
        return direct_ip

    forwarded_for = request.headers.get("x-forwarded-for")
    if not forwarded_for:
        return direct_ip

    # "client, proxy1, proxy2"
    client_ip = forwarded_for.split(",")[0].strip()
    logger.debug("Using X-Forwarded-For from trusted proxy", proxy_ip=direct_ip, client_ip=client_ip)
    return client_ip or direct_ip


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        request.state.ip_address = extract_client_ip(request)

        logger.debug(
            "Request started",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            ip_address=request.state.ip_address,
            user_agent=request.headers.get("user-agent"),
        )

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
