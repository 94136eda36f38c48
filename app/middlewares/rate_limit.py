# app/middlewares/rate_limit.py
import time
from typing import Optional
from fastapi import Request
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from app.platform.cache.redis import get_redis
from app.platform.config import settings
from app.platform.logger import get_logger

logger = get_logger(__name__)

WINDOW_SECONDS = 60


def _too_many_requests(retry_after: int) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"detail": "Too Many Requests - Rate limit exceeded."},
        headers={"Retry-After": str(max(retry_after, 0))},
    )


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed one-minute window per client IP and path, limits from settings.RATE_LIMITS."""

    def __init__(self, app):
        super().__init__(app)
        self.memory_store = {}

    def hit_memory(self, key: str, limit: int, now: float) -> Optional[int]:
        """Count one request against `key`; returns Retry-After seconds when over the limit."""
        # Windows that have ended are dropped so the store only holds live keys
        expired = [k for k, (_, expiry) in self.memory_store.items() if now > expiry]
        for k in expired:
            del self.memory_store[k]

        count, expiry = self.memory_store.get(key, (0, now + WINDOW_SECONDS))
        if count >= limit:
            return int(expiry - now)

        self.memory_store[key] = (count + 1, expiry)
        return None

    async def dispatch(self, request: Request, call_next):
        client_ip = request.client.host if request.client else "testclient"

        # Skip limit if whitelisted
        if client_ip in settings.WHITELIST_IPS:
            return await call_next(request)

        path = request.url.path
        limit = settings.RATE_LIMITS.get(path)

        # If endpoint is not rate-limited, continue
        if limit is None:
            return await call_next(request)

        # ---------------------------
        # TEST MODE: In-memory store
        # ---------------------------
        if settings.FORCE_IN_MEMORY_RATE_LIMITER:
            retry_after = self.hit_memory(f"{client_ip}:{path}", limit, time.time())
            if retry_after is not None:
                return _too_many_requests(retry_after)
            return await call_next(request)

        # ---------------------------
        # PRODUCTION: Redis store
        # ---------------------------
        key = f"rl:{client_ip}:{path}"
        try:
            redis = get_redis()
            current_count = await redis.incr(key)
            if current_count == 1:
                await redis.expire(key, WINDOW_SECONDS)
            if current_count > limit:
                return _too_many_requests(await redis.ttl(key))
        except RedisError as e:
            # Admission fails open when Redis is unreachable
            logger.warning(f"Rate limiter unavailable, allowing request: {e}")

        return await call_next(request)
