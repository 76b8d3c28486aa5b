"""
Health check endpoints for the REST API.
Provides basic and detailed health status of the service and its dependencies.
"""

import asyncio

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from shared.config.settings import settings
from shared.infrastructure.db import SessionLocal
from shared.infrastructure.events import get_publish_circuit_breaker, get_redis_pool


router = APIRouter(prefix="/api", tags=["health"])

DEPENDENCY_TIMEOUT = 3.0


@router.get("/health")
def health_check():
    """
    Basic health check endpoint.
    Returns service status without checking dependencies.
    """
    return {
        "status": "healthy",
        "service": "rest-api",
        "environment": settings.environment,
    }


def _check_database() -> dict:
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
        return {"status": "healthy"}
    except SQLAlchemyError as e:
        return {"status": "unhealthy", "error": str(e)}


async def _check_redis() -> dict:
    try:
        redis_client = await get_redis_pool()
        await asyncio.wait_for(redis_client.ping(), timeout=DEPENDENCY_TIMEOUT)
        return {"status": "healthy"}
    except (RedisError, OSError, asyncio.TimeoutError) as e:
        return {"status": "unhealthy", "error": str(e) or type(e).__name__}


@router.get("/health/detailed")
async def detailed_health_check():
    """
    Health of PostgreSQL, Redis and the realtime publish breaker.

    Returns 503 Service Unavailable if any dependency is down.
    """
    database = await asyncio.to_thread(_check_database)
    redis_status = await _check_redis()
    dependencies = {"database": database, "redis": redis_status}

    all_healthy = all(dep["status"] == "healthy" for dep in dependencies.values())
    checks = {
        "service": "rest-api",
        "environment": settings.environment,
        "status": "healthy" if all_healthy else "degraded",
        "dependencies": dependencies,
        "publish_circuit_breaker": get_publish_circuit_breaker().get_stats(),
    }
    if not all_healthy:
        return JSONResponse(content=checks, status_code=503)
    return checks
