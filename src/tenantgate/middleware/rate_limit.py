"""Rate limiting middleware: Redis fixed-window counter per client IP.

Learn: Each IP gets a counter key ``tenantgate:rl:{ip}:{bucket}:{minute}``.
Register and login share a stricter bucket to slow password guessing.
Without Redis (not configured, unreachable, or failing mid-request) the
request goes through unlimited.
"""

import time
from typing import Optional

import structlog
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from tenantgate.redis_pool import get_redis

logger = structlog.get_logger()

AUTH_PATHS = ("/api/v1/tenants/login", "/api/v1/tenants/register")
WINDOW_SECONDS = 60


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, default_rpm: int = 100, auth_rpm: int = 10):
        super().__init__(app)
        self.default_rpm = default_rpm
        self.auth_rpm = auth_rpm

    async def dispatch(self, request: Request, call_next) -> Response:
        is_auth = request.url.path.startswith(AUTH_PATHS)
        rpm = self.auth_rpm if is_auth else self.default_rpm
        count = await self._hit(request, "auth" if is_auth else "api")
        if count is None:
            return await call_next(request)

        if count > rpm:
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later."},
                headers={"Retry-After": str(WINDOW_SECONDS)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(rpm)
        response.headers["X-RateLimit-Remaining"] = str(max(0, rpm - count))
        return response

    async def _hit(self, request: Request, bucket: str) -> Optional[int]:
        """Count this request; None when there is no working Redis."""
        redis = get_redis()
        if redis is None:
            return None
        client_ip = request.client.host if request.client else "unknown"
        window = int(time.time() // WINDOW_SECONDS)
        key = f"tenantgate:rl:{client_ip}:{bucket}:{window}"
        try:
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, WINDOW_SECONDS * 2)
        except RedisError as e:
            logger.warning("rate_limit.redis_error", error=str(e))
            return None
        return count
