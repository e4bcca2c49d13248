# safewatch/routes/health.py
"""
Liveness and readiness endpoints.
"""

import time

from fastapi import APIRouter

from safewatch.config import settings
from safewatch.db.pool import db_health_check
from safewatch.infrastructure.observability.logging import log_health_check
from safewatch.services.redis_client import fast_redis

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "safewatch"}


@router.get("/readyz")
async def readyz():
    """
    Readiness check covering the database pool, Redis (when the rate limiter
    uses it) and configuration.
    """
    checks = {}
    overall_ok = True

    # 1) Database pool
    t0 = time.time()
    try:
        db_health = await db_health_check()
        is_healthy = db_health.get("healthy", False)
        latency_ms = round((time.time() - t0) * 1000, 1)

        checks["database"] = {"ok": is_healthy, "latency_ms": latency_ms}

        if "pool_stats" in db_health:
            pool_stats = db_health["pool_stats"]
            checks["database"].update(
                {
                    "pool_size": pool_stats.get("pool_size", 0),
                    "pool_available": pool_stats.get("pool_available", 0),
                    "requests_waiting": pool_stats.get("requests_waiting", 0),
                }
            )

        if not is_healthy:
            checks["database"]["error"] = db_health.get("error", "Database unhealthy")

        overall_ok = overall_ok and is_healthy
        log_health_check("database", is_healthy, latency_ms, db_health.get("error"))

    except Exception as e:
        checks["database"] = {
            "ok": False,
            "error": f"{type(e).__name__}: {e}",
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        overall_ok = False

    # 2) Redis, only when it backs the SOS rate limiter
    if settings.redis_required():
        t0 = time.time()
        redis_ok = await fast_redis.ping()
        latency_ms = round((time.time() - t0) * 1000, 1)
        checks["redis"] = {"ok": redis_ok, "latency_ms": latency_ms}
        overall_ok = overall_ok and redis_ok
        log_health_check("redis", redis_ok, latency_ms)
    else:
        checks["redis"] = {"ok": True, "skipped": "not used by the rate limiter"}

    # 3) Configuration
    config_issues = []

    if not settings.DATABASE_URL:
        config_issues.append("DATABASE_URL not set")

    if not settings.EMAIL_API_KEY:
        config_issues.append("EMAIL_API_KEY not set")

    if settings.redis_required() and not fast_redis.configured:
        config_issues.append("REDIS_URL not set")

    if settings.SMS_ENABLED and not settings.sms_configured():
        config_issues.append("SMS_ENABLED but Twilio credentials are incomplete")

    config_ok = not config_issues
    checks["configuration"] = {
        "ok": config_ok,
        "issues": config_issues or None,
        "environment": settings.environment,
        "sms_enabled": settings.sms_configured(),
    }
    overall_ok = overall_ok and config_ok

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}


@router.get("/health/database")
async def database_health():
    """Detailed database pool health information."""
    return await db_health_check()
