from __future__ import annotations

import time

import structlog
from redis.asyncio import Redis

logger = structlog.get_logger(__name__)

RATE_LIMIT_KEY_PREFIX = "wallet_pass:ratelimit"


def build_window_key(*, scope: str, identifier: str, window_seconds: int, now: float) -> str:
    window_index = int(now // window_seconds)
    return f"{RATE_LIMIT_KEY_PREFIX}:{scope}:{identifier}:{window_index}"


async def allow_request(
    redis_client: Redis | None,
    *,
    scope: str,
    identifier: str,
    limit: int,
    window_seconds: int = 60,
    now: float | None = None,
) -> bool:
    """Fixed-window counter; an unavailable Redis lets the request through."""
    if limit <= 0:
        return True
    if redis_client is None:
        logger.warning("rate_limit_backend_missing", scope=scope)
        return True

    key = build_window_key(
        scope=scope,
        identifier=identifier,
        window_seconds=window_seconds,
        now=time.time() if now is None else now,
    )
    try:
        count = await redis_client.incr(key)
        if count == 1:
            await redis_client.expire(key, window_seconds)
    except Exception as exc:
        logger.warning("rate_limit_backend_unavailable", scope=scope, error_type=type(exc).__name__)
        return True

    if count > limit:
        logger.info("rate_limit_exceeded", scope=scope, count=count, limit=limit)
        return False
    return True
