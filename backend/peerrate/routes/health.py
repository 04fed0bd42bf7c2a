"""
PeerRate Backend - Health Check Route
=====================================

What:  GET /health for container probes and load balancers.
How:   Runs one cheap probe per dependency and folds them into a status.

Status levels:
    healthy:   database, Redis and object storage all respond (HTTP 200)
    degraded:  Redis or storage down; reviews still work, averages are
               recomputed on every read (HTTP 200)
    unhealthy: database down (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Request, Response, status
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from peerrate import __version__
from peerrate.database import engine
from peerrate.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(request: Request, response: Response) -> HealthResponse:
    db_status = "connected"
    cache_status = "connected"
    storage_status = "available"
    overall = "healthy"

    # ── Database ──────────────────────────────────────────────────────────
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    # ── Redis ─────────────────────────────────────────────────────────────
    redis = getattr(request.app.state, "redis", None)
    try:
        if redis is None or not await redis.ping():
            cache_status = "disconnected"
    except (RedisError, OSError) as e:
        cache_status = "disconnected"
        logger.warning("Health check: Redis unreachable: %s", str(e))

    # ── Object Storage ────────────────────────────────────────────────────
    storage = getattr(request.app.state, "object_storage", None)
    if storage is None or not await storage.health_check():
        storage_status = "unavailable"

    if overall != "unhealthy" and (cache_status != "connected" or storage_status != "available"):
        overall = "degraded"

    if overall == "unhealthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        cache=cache_status,
        storage=storage_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
