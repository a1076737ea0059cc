"""Health check endpoints."""

import asyncio
import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps_admin import get_current_admin_user
from infrastructure.config import get_settings
from infrastructure.database import get_db
from infrastructure.database.models import User

logger = logging.getLogger(__name__)

router = APIRouter()
settings = get_settings()


async def _ping_redis(timeout: float) -> None:
    import redis.asyncio as aioredis

    r = aioredis.from_url(settings.redis_url)
    try:
        await asyncio.wait_for(r.ping(), timeout=timeout)
    finally:
        await r.aclose()


@router.get("/health")
async def health_check():
    """Basic health check."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/health/db")
async def health_check_db(db: AsyncSession = Depends(get_db)):
    """Health check with database connectivity."""
    try:
        result = await asyncio.wait_for(db.execute(text("SELECT 1")), timeout=5.0)
        result.scalar()
        db_status = "connected"
    except TimeoutError:
        logger.error("Health check DB timeout")
        db_status = "error: database timeout"
    except Exception as e:
        logger.error("Health check DB error: %s", str(e))
        db_status = "error: database check failed"

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "app": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "database": db_status,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/health/redis")
async def health_redis():
    """Check Redis connectivity (rate limit storage)."""
    if not settings.redis_url:
        raise HTTPException(status_code=503, detail="Redis not configured")
    try:
        await _ping_redis(timeout=3.0)
        return {"status": "healthy", "service": "redis"}
    except TimeoutError:
        raise HTTPException(status_code=503, detail="Redis timeout")
    except Exception as e:
        raise HTTPException(status_code=503, detail=f"Redis unavailable: {str(e)}")


@router.get("/health/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)):
    """Readiness probe. The database is required; Redis only degrades rate limiting."""
    db_ok = False
    try:
        await asyncio.wait_for(db.execute(text("SELECT 1")), timeout=5.0)
        db_ok = True
    except Exception:
        logger.warning("Readiness check: database unavailable")

    redis_state = "not configured"
    if settings.redis_url:
        try:
            await _ping_redis(timeout=2.0)
            redis_state = "ok"
        except Exception:
            redis_state = "degraded"

    return {
        "ready": db_ok,
        "database": "ok" if db_ok else "unavailable",
        "redis": redis_state,
    }


@router.get("/health/live")
async def liveness_check():
    """Liveness probe."""
    return {"alive": True}


@router.get("/health/services")
async def services_check(admin_user: User = Depends(get_current_admin_user)):
    """Which external services are configured."""
    services = {
        "razorpay": {
            "configured": bool(settings.razorpay_key_id and settings.razorpay_key_secret),
            "webhook_secret_set": bool(settings.razorpay_webhook_secret),
            "currency": settings.payment_currency,
        },
        "resend": {
            "configured": bool(settings.resend_api_key),
            "from_email": settings.resend_from_email,
        },
    }
    all_configured = all(s["configured"] for s in services.values())

    return {
        "status": "healthy" if all_configured else "degraded",
        "services": services,
        "timestamp": datetime.now(UTC).isoformat(),
    }
