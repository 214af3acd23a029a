"""Rate limiting middleware — Redis fixed window per client.

Rules:
  - Applies to paths under /api/ only (health checks and docs are exempt)
  - Key pattern: "ratelimit:{client_ip}:{endpoint_group}", group = first
    path segment after the API version ("users", "health", ...)
  - Client IP is the socket peer, or the first X-Forwarded-For hop when
    TRUST_PROXY is set (reverse proxy aware)
  - Over the limit → 429 RateLimitError (9001) with Retry-After
  - Otherwise X-RateLimit-Limit / -Remaining / -Reset are attached

Redis logic:
    count = await redis.incr(key)
    if count == 1:
        await redis.expire(key, window)
    if count > limit:
        reject

Redis failures never block traffic: the request proceeds unlimited.
"""

import logging
import time

from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from config.settings import settings
from src.uh_common.errors import RateLimitError
from src.uh_common.response import error_response

logger = logging.getLogger("uh.ratelimit")

_API_PREFIX = "/api/"


def client_ip(request: Request, trust_proxy: bool) -> str:
    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return "unknown"


def endpoint_group(path: str) -> str:
    """/api/v1/users/abc → "users"."""
    parts = [p for p in path.split("/") if p]
    # ["api", "v1", "users", ...]
    if len(parts) >= 3:
        return parts[2]
    return parts[-1] if parts else "root"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        max_requests: int | None = None,
        window_seconds: int | None = None,
        trust_proxy: bool | None = None,
    ) -> None:
        super().__init__(app)
        self.max_requests = max_requests or settings.RATE_LIMIT_MAX_REQUESTS
        self.window_seconds = window_seconds or settings.RATE_LIMIT_WINDOW_SECONDS
        self.trust_proxy = settings.TRUST_PROXY if trust_proxy is None else trust_proxy

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        redis = getattr(request.app.state, "redis", None)
        if redis is None or not request.url.path.startswith(_API_PREFIX):
            return await call_next(request)

        ip = client_ip(request, self.trust_proxy)
        key = f"ratelimit:{ip}:{endpoint_group(request.url.path)}"
        try:
            count = int(await redis.incr(key))
            if count == 1:
                await redis.expire(key, self.window_seconds)
                ttl = self.window_seconds
            else:
                ttl = int(await redis.ttl(key))
                if ttl < 0:
                    # Key lost its expiry (e.g. crash between INCR and EXPIRE)
                    await redis.expire(key, self.window_seconds)
                    ttl = self.window_seconds
        except (RedisError, OSError) as exc:
            logger.warning("Rate limiter unavailable, allowing request: %s", exc)
            return await call_next(request)

        if count > self.max_requests:
            logger.warning(
                "Rate limit exceeded for %s: %d requests in %ds", ip, count, self.window_seconds
            )
            err = RateLimitError(retry_after=ttl)
            return JSONResponse(
                status_code=err.http_status,
                content=error_response(err.code, err.message, request).model_dump(),
                headers={"Retry-After": str(ttl)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(max(0, self.max_requests - count))
        response.headers["X-RateLimit-Reset"] = str(int(time.time()) + ttl)
        return response
