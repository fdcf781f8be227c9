"""
Health check endpoint.

Monitors service health (database, Redis) and optional integrations.
"""

import json
from datetime import datetime, timezone

from fastapi import APIRouter, Response

from shared.config import settings
from shared.database import db
from shared.logging import get_logger
from shared.redis_client import redis_client

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.

    Optional integrations (storage, AI, render) are reported but never make
    the service unhealthy.

    Returns:
        Health status with service checks
    """
    issues = []
    status_code = 200

    db_healthy = await db.health_check()
    if not db_healthy:
        issues.append("database connection failed")
        status_code = 503

    redis_healthy = await redis_client.health_check()
    if not redis_healthy:
        issues.append("redis connection failed")
        status_code = 503

    response = {
        "status": "healthy" if status_code == 200 else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": "connected" if db_healthy else "disconnected",
        "redis": "connected" if redis_healthy else "disconnected",
        "integrations": {
            "storage": settings.bunny_configured,
            "ai": bool(settings.openai_api_key),
            "render": settings.shotstack_configured,
        },
    }

    if issues:
        response["issues"] = issues
        logger.warning("Health check failed", extra={"issues": issues})

    return Response(
        content=json.dumps(response),
        status_code=status_code,
        media_type="application/json"
    )
