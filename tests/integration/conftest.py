"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool and the Redis client remain valid across the
entire test session.

ASGITransport does not run the app lifespan, so the Redis store and cache
service are wired onto app.state here the same way lifespan does it.
"""

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.main import app
from src.uh_cache.application.service import CacheService
from src.uh_cache.infrastructure.redis_store import RedisStore
from src.uh_common.redis_client import create_redis


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client with a live Redis-backed cache."""
    redis = create_redis()
    store = RedisStore(redis)
    await store.connect()
    app.state.redis = redis
    app.state.store = store
    app.state.cache = CacheService(store)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await store.close()
    app.state.redis = None
    app.state.store = None
    app.state.cache = None
