"""Liveness and readiness.

/health answers "is the process up" and reports each backing service;
it stays 200 when degraded so an orchestrator does not restart a process
that can recover on its own.  /ready answers "can this instance take
traffic": 503 when PostgreSQL is configured but unreachable.  Redis is
not critical for readiness.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response
from sqlalchemy import text

from app.db import engine as db_engine
from app.db.redis import redis_pool

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _check_redis() -> str:
    if redis_pool is None:
        return "not_configured"
    try:
        await redis_pool.ping()  # type: ignore[misc]
        return "ok"
    except Exception:
        logger.warning("Redis health check failed", exc_info=True)
        return "degraded"


async def _check_database() -> str:
    if db_engine.engine is None:
        return "not_configured"
    try:
        async with db_engine.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return "ok"
    except Exception:
        logger.warning("Database health check failed", exc_info=True)
        return "degraded"


@router.get("/health")
async def health() -> dict:
    checks = {
        "database": await _check_database(),
        "redis": await _check_redis(),
    }
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    if await _check_database() == "degraded":
        return Response(status_code=503)
    return Response(status_code=200)
