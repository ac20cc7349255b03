"""Health check endpoints for Kubernetes liveness and readiness checks."""
from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from redis import asyncio as aioredis
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from credit_ledger.api.deps import get_db
from credit_ledger.config import settings

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health", status_code=status.HTTP_200_OK, tags=["Health"])
async def health_check() -> dict[str, str]:
    """
    Liveness check for Kubernetes.

    Does not check external dependencies.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": "0.1.0",
    }


@router.get("/health/ready", tags=["Health"])
async def readiness_check(db: AsyncSession = Depends(get_db)) -> JSONResponse:
    """
    Readiness check for Kubernetes.

    The database is required. Redis only backs the scheduled jobs, so it is
    reported but does not fail readiness.
    """
    checks = {
        "database": "unknown",
        "redis": "unknown",
    }
    ready = True

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "connected"
    except SQLAlchemyError as exc:
        logger.error("database_health_check_failed", error=str(exc))
        checks["database"] = "disconnected"
        ready = False

    try:
        redis_client = aioredis.from_url(str(settings.redis_url), encoding="utf-8", decode_responses=True)
        await redis_client.ping()
        checks["redis"] = "connected"
        await redis_client.aclose()
    except (RedisError, OSError) as exc:
        logger.warning("redis_health_check_failed", error=str(exc))
        checks["redis"] = "disconnected"

    status_code = status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE

    return JSONResponse(
        status_code=status_code,
        content={
            "ready": ready,
            "checks": checks,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )
