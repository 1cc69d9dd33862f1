"""Health check endpoint.

Verifies connectivity to the ledger database and Redis, returns structured
status. Used by Docker healthchecks, load balancers, and monitoring systems.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from sqlalchemy import text

from escrow_settlement.infrastructure.redis_client import get_redis, is_redis_initialized
from escrow_settlement.logging_config import get_logger
from escrow_settlement.schemas.settlement import HealthResponse

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns the health status of the application and its dependencies.",
)
async def health_check(request: Request) -> HealthResponse:
    """Check connectivity to the database and Redis."""
    db_status = "unknown"
    redis_status = "disabled"

    engine = getattr(request.app.state, "engine", None)
    if engine is not None:
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            db_status = "healthy"
        except Exception as exc:
            db_status = f"unhealthy: {exc}"
            logger.error("health.db_check_failed", error=str(exc))

    if is_redis_initialized():
        try:
            await get_redis().ping()
            redis_status = "healthy"
        except Exception as exc:
            redis_status = f"unhealthy: {exc}"
            logger.error("health.redis_check_failed", error=str(exc))

    overall = "ok" if db_status == "healthy" and redis_status in ("healthy", "disabled") else "degraded"

    return HealthResponse(
        status=overall,
        version=request.app.version,
        database=db_status,
        redis=redis_status,
    )
