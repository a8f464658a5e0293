"""
Health Endpoints.

    GET /health         liveness, never touches dependencies
    GET /health/ready   readiness, 503 unless the database answers in time
"""

import asyncio
from typing import Any

from fastapi import APIRouter, HTTPException
from sqlalchemy import text

from outliner.backend.core.config import get_app_config
from outliner.backend.core.database import get_session_factory
from outliner.backend.core.logging import get_logger
from outliner.backend.core.utils import utc_now

router = APIRouter()
logger = get_logger(__name__)


async def check_database() -> dict[str, Any]:
    """Run SELECT 1. Failures are reported in the result, not raised."""
    started = utc_now()
    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("Database health check failed", extra={"error": str(e)})
        return {"status": "unhealthy", "error": str(e)}
    return {
        "status": "healthy",
        "latency_ms": int((utc_now() - started).total_seconds() * 1000),
    }


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/health/ready")
async def readiness_check() -> dict[str, Any]:
    """Bounded by application.timeouts.health."""
    timeout = get_app_config().application.timeouts.health
    try:
        async with asyncio.timeout(timeout):
            database = await check_database()
    except TimeoutError:
        database = {"status": "unhealthy", "error": f"no response within {timeout}s"}

    report = {
        "status": database["status"],
        "checks": {"database": database},
        "timestamp": utc_now().isoformat(),
    }
    if database["status"] != "healthy":
        logger.warning("Readiness check failed", extra={"checks": report["checks"]})
        raise HTTPException(status_code=503, detail=report)
    return report
