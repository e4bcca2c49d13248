"""
Request middleware and the SOS rate limiter.
"""

from safewatch.middleware.rate_limit_headers import RateLimitHeadersMiddleware
from safewatch.middleware.rate_limiter import RateLimiter, sos_rate_limiter
from safewatch.middleware.request_context import RequestContextMiddleware

__all__ = [
    "RequestContextMiddleware",
    "RateLimitHeadersMiddleware",
    "RateLimiter",
    "sos_rate_limiter",
]
