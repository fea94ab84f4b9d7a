"""
Fixed-window rate limiting on a shared key-value store.

Counters live in Redis, not in process memory, so every server instance sees
the same count for a client. Key: ``ratelimit:{scope}:{client}``.
"""

import logging
from dataclasses import dataclass

from fastapi import HTTPException, Request, status
from redis.exceptions import RedisError

from app.core.cache import KeyValueStore, get_kv_store
from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after: int = 0


class RateLimiter:
    def __init__(self, store: KeyValueStore, max_requests: int, window_seconds: int):
        self.store = store
        self.max_requests = max_requests
        self.window_seconds = window_seconds

    async def check(self, scope: str, identifier: str) -> RateLimitDecision:
        """
        Count one request for ``identifier`` and decide whether it may proceed.

        If the store is unreachable the request is allowed: rate limiting must
        not take search down with it.
        """
        key = f"ratelimit:{scope}:{identifier}"
        try:
            count = await self.store.incr(key)
            if count == 1:
                await self.store.expire(key, self.window_seconds)

            if count > self.max_requests:
                ttl = await self.store.ttl(key)
                if ttl < 0:
                    # Window key lost its expiry (e.g. a crash between INCR and EXPIRE)
                    await self.store.expire(key, self.window_seconds)
                    ttl = self.window_seconds
                return RateLimitDecision(allowed=False, remaining=0, retry_after=ttl)

            return RateLimitDecision(allowed=True, remaining=self.max_requests - count)

        except (RedisError, OSError) as e:
            logger.warning(f"Rate limit store unavailable, allowing request: {e}")
            return RateLimitDecision(allowed=True, remaining=self.max_requests)


def client_identifier(request: Request) -> str:
    """First X-Forwarded-For hop, else the socket peer"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def get_rate_limiter() -> RateLimiter | None:
    store = get_kv_store()
    if not settings.RATE_LIMIT_ENABLED or store is None:
        return None
    return RateLimiter(
        store=store,
        max_requests=settings.RATE_LIMIT_REQUESTS,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    )


def rate_limit(scope: str):
    """FastAPI dependency factory: ``Depends(rate_limit("search"))``"""

    async def dependency(request: Request) -> None:
        limiter = get_rate_limiter()
        if limiter is None:
            return

        decision = await limiter.check(scope, client_identifier(request))
        if not decision.allowed:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests",
                headers={"Retry-After": str(decision.retry_after)},
            )

    return dependency
