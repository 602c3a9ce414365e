"""
Health check endpoints.
"""

import structlog
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from cafirm.core.config import settings
from cafirm.core.dependencies import DBSession
from cafirm.realtime.sse import broadcaster

logger = structlog.get_logger()

router = APIRouter()


@router.get("")
async def health_check() -> dict:
    """Basic liveness check."""
    return {
        "status": "healthy",
        "version": settings.VERSION,
    }


@router.get("/ready")
async def readiness_check(db: DBSession):
    """
    Readiness check for the load balancer.

    Fails with 503 while the database is unreachable.
    """
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Readiness check failed", error=str(e))
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unavailable", "checks": {"database": "error"}},
        )

    return {
        "status": "ready",
        "checks": {
            "database": "ok",
            "sse_clients": broadcaster.client_count(),
        },
    }
