"""
Health check endpoints.
"""
import time
import logging
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from gathering_push.db import check_database_health
from gathering_push.core.settings import settings
from gathering_push.scheduler.jobs import is_scheduler_running

logger = logging.getLogger("gathering_push.health")
router = APIRouter()


@router.get("")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "environment": settings.environment,
        "version": "1.0.0"
    }


@router.get("/ready")
async def readiness_check():
    """Readiness: database reachable. Reports scheduler state for visibility."""
    db_health = await check_database_health()
    body = {
        "status": "ready" if db_health["status"] == "healthy" else "not_ready",
        "services": {
            "database": db_health,
            "scheduler": {
                "enabled": settings.push_scheduler_enabled,
                "running": is_scheduler_running(),
            },
        },
    }
    if db_health["status"] != "healthy":
        logger.error("Readiness check failed: database unavailable")
        return JSONResponse(status_code=503, content=body)
    return body
