"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from sqlalchemy import text

from config.settings import settings
from src.uh_cache.application.service import CacheService
from src.uh_cache.infrastructure.redis_store import RedisStore
from src.uh_common.database import engine
from src.uh_common.exception_handlers import register_exception_handlers
from src.uh_common.redis_client import create_redis
from src.uh_gateway.api.router import router as health_router
from src.uh_gateway.middleware.rate_limit import RateLimitMiddleware
from src.uh_gateway.middleware.request_log import RequestLogMiddleware
from src.uh_user.api.router import router as user_router

logger = logging.getLogger("uh.app")


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB, connect Redis (degraded if down). Shutdown: dispose."""
    configure_logging()

    # Startup
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))

    redis = create_redis()
    store = RedisStore(redis, reconnect_interval=settings.REDIS_RECONNECT_INTERVAL)
    await store.connect()
    app.state.redis = redis
    app.state.store = store
    app.state.cache = (
        CacheService(store, default_ttl=settings.CACHE_DEFAULT_TTL)
        if settings.CACHE_ENABLED
        else None
    )
    logger.info(
        "%s started (%s), cache %s",
        settings.APP_NAME,
        settings.APP_ENV,
        "enabled" if settings.CACHE_ENABLED else "disabled",
    )
    yield
    # Shutdown
    await engine.dispose()
    await store.close()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)

# Starlette runs the last-added middleware first: request log wraps everything.
app.add_middleware(GZipMiddleware, minimum_size=1024)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["ETag", "X-Cache", "X-Request-ID", "Retry-After"],
)
if settings.RATE_LIMIT_ENABLED:
    app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestLogMiddleware)

register_exception_handlers(app)

app.include_router(user_router, prefix="/api/v1")
app.include_router(health_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
