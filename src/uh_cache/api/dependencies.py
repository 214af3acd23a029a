"""FastAPI dependency: get_cache_service.

The CacheService is built by the application lifespan and published on
``app.state.cache``. It is None when caching is disabled or the app was
started without a lifespan (e.g. ASGITransport in tests); every consumer
treats None as "no cache".
"""

from starlette.requests import Request

from src.uh_cache.application.service import CacheService


def get_cache_service(request: Request) -> CacheService | None:
    return getattr(request.app.state, "cache", None)
