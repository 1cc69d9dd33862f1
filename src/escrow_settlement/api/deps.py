"""FastAPI dependency injection providers.

These are used with Depends() in route handlers to inject the settlement
facade (built once in the application lifespan), configuration, and the
Idempotency-Key check for mutating routes.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Header, Request
from redis.exceptions import RedisError

from escrow_settlement.config import Settings, get_settings
from escrow_settlement.domain.exceptions import DuplicateOperationError, NotInitializedError
from escrow_settlement.domain.models import ESCROW_SINGLE_ID
from escrow_settlement.infrastructure.redis_client import (
    claim_idempotency_key,
    is_redis_initialized,
    release_idempotency_key,
)
from escrow_settlement.logging_config import get_logger
from escrow_settlement.services.settlement_facade import SettlementFacade

logger = get_logger(__name__)


def get_facade(request: Request) -> SettlementFacade:
    """Provide the SettlementFacade owned by the running application."""
    facade = getattr(request.app.state, "facade", None)
    if facade is None:
        raise NotInitializedError(ESCROW_SINGLE_ID)
    return facade


def get_app_settings() -> Settings:
    """Provide the application settings."""
    return get_settings()


async def enforce_idempotency(
    request: Request,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
    settings: Settings = Depends(get_app_settings),
) -> AsyncIterator[None]:
    """Reject a replayed Idempotency-Key. No header, no check.

    The key is claimed before the operation runs and released again if the
    request fails, so a rejected or busy call can be retried with the same key.
    """
    if not idempotency_key:
        yield
        return
    if not is_redis_initialized():
        logger.warning("idempotency.skipped", reason="redis not initialized", path=request.url.path)
        yield
        return

    scoped = f"{request.method}:{request.url.path}:{idempotency_key}"
    try:
        claimed = await claim_idempotency_key(scoped, ttl_seconds=settings.redis_idempotency_ttl_seconds)
    except RedisError as exc:
        logger.warning("idempotency.skipped", reason=str(exc), path=request.url.path)
        yield
        return

    if not claimed:
        raise DuplicateOperationError(idempotency_key)

    try:
        yield
    except Exception:
        try:
            await release_idempotency_key(scoped)
        except RedisError as exc:
            logger.warning("idempotency.release_failed", key=scoped, error=str(exc))
        else:
            logger.info("idempotency.released", key=scoped)
        raise
