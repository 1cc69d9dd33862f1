"""Redis client for idempotency keys.

Redis is optional: when it is not configured or unreachable at startup the
settlement engine still serves requests, and the idempotency check is
skipped with a warning.

Usage:
    from escrow_settlement.infrastructure.redis_client import init_redis, claim_idempotency_key

    await init_redis(settings.redis_url)
    if not await claim_idempotency_key("fund:abc"):
        ...  # replay
"""

from __future__ import annotations

import redis.asyncio as aioredis

from escrow_settlement.logging_config import get_logger

logger = get_logger(__name__)

_redis_client: aioredis.Redis | None = None

IDEMPOTENCY_PREFIX = "idempotency:"


async def init_redis(url: str) -> aioredis.Redis:
    """Initialize and return the Redis client. Called during app startup."""
    global _redis_client
    client = aioredis.from_url(url, decode_responses=True)
    # Verify connectivity before publishing the client
    await client.ping()
    _redis_client = client
    logger.info("redis.connected", url=url)
    return _redis_client


def get_redis() -> aioredis.Redis:
    """Return the Redis client singleton. Must call init_redis() first."""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


def is_redis_initialized() -> bool:
    return _redis_client is not None


async def close_redis() -> None:
    """Close the Redis connection. Called during app shutdown."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        logger.info("redis.disconnected")
        _redis_client = None


# --- Idempotency Helpers ---


async def claim_idempotency_key(key: str, ttl_seconds: int = 86400, value: str = "1") -> bool:
    """Atomically claim an idempotency key (SET NX EX).

    Returns True if the key was new and is now claimed, False if it was
    already used within its TTL.
    """
    redis = get_redis()
    claimed = await redis.set(f"{IDEMPOTENCY_PREFIX}{key}", value, nx=True, ex=ttl_seconds)
    return bool(claimed)


async def release_idempotency_key(key: str) -> None:
    """Drop a claimed key so the same request can be retried."""
    redis = get_redis()
    await redis.delete(f"{IDEMPOTENCY_PREFIX}{key}")
