"""Unit tests for RateLimitMiddleware with an in-memory Redis double."""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError
from starlette.requests import Request

from src.uh_common.exception_handlers import register_exception_handlers
from src.uh_gateway.middleware.rate_limit import RateLimitMiddleware, client_ip, endpoint_group


class FakeRedis:
    def __init__(self) -> None:
        self.counts: dict[str, int] = {}
        self.expiry: dict[str, int] = {}
        self.down = False

    def _check(self) -> None:
        if self.down:
            raise RedisConnectionError("connection refused")

    async def incr(self, key: str) -> int:
        self._check()
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def expire(self, key: str, seconds: int) -> bool:
        self._check()
        self.expiry[key] = seconds
        return True

    async def ttl(self, key: str) -> int:
        self._check()
        return self.expiry.get(key, -1)


def _build_app(redis: FakeRedis | None, max_requests: int = 3) -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)
    app.add_middleware(
        RateLimitMiddleware, max_requests=max_requests, window_seconds=60, trust_proxy=True
    )

    @app.get("/api/v1/users")
    async def users() -> dict:
        return {"ok": True}

    @app.get("/api/v1/health")
    async def api_health() -> dict:
        return {"ok": True}

    @app.get("/health")
    async def health() -> dict:
        return {"ok": True}

    app.state.redis = redis
    return app


@pytest.fixture
def redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
async def http(redis: FakeRedis) -> AsyncClient:
    app = _build_app(redis)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


class TestHelpers:
    def test_endpoint_group(self) -> None:
        assert endpoint_group("/api/v1/users/abc") == "users"
        assert endpoint_group("/api/v1/users") == "users"
        assert endpoint_group("/health") == "health"
        assert endpoint_group("/") == "root"


class TestRateLimit:
    async def test_headers_within_limit(self, http, redis) -> None:
        resp = await http.get("/api/v1/users")
        assert resp.status_code == 200
        assert resp.headers["x-ratelimit-limit"] == "3"
        assert resp.headers["x-ratelimit-remaining"] == "2"
        assert "x-ratelimit-reset" in resp.headers
        assert redis.expiry == {"ratelimit:127.0.0.1:users": 60}

    async def test_over_limit_returns_429(self, http) -> None:
        for _ in range(3):
            assert (await http.get("/api/v1/users")).status_code == 200

        resp = await http.get("/api/v1/users")

        assert resp.status_code == 429
        assert resp.headers["retry-after"] == "60"
        body = resp.json()
        assert body["code"] == 9001
        assert body["data"] is None

    async def test_groups_are_counted_separately(self, http) -> None:
        for _ in range(3):
            await http.get("/api/v1/users")
        assert (await http.get("/api/v1/health")).status_code == 200

    async def test_clients_are_counted_separately(self, http) -> None:
        for _ in range(3):
            await http.get("/api/v1/users", headers={"X-Forwarded-For": "10.0.0.1"})
        resp = await http.get("/api/v1/users", headers={"X-Forwarded-For": "10.0.0.2, 10.0.0.1"})
        assert resp.status_code == 200

    async def test_non_api_paths_are_exempt(self, http, redis) -> None:
        for _ in range(5):
            assert (await http.get("/health")).status_code == 200
        assert redis.counts == {}

    async def test_redis_down_fails_open(self, http, redis) -> None:
        redis.down = True
        for _ in range(5):
            resp = await http.get("/api/v1/users")
            assert resp.status_code == 200
            assert "x-ratelimit-limit" not in resp.headers

    async def test_missing_expiry_is_restored(self, http, redis) -> None:
        await http.get("/api/v1/users")
        redis.expiry.clear()
        await http.get("/api/v1/users")
        assert redis.expiry["ratelimit:127.0.0.1:users"] == 60

    async def test_no_redis_configured(self) -> None:
        app = _build_app(None, max_requests=1)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            for _ in range(3):
                assert (await ac.get("/api/v1/users")).status_code == 200


class TestClientIp:
    def test_ignores_forwarded_when_untrusted(self) -> None:
        scope = {
            "type": "http",
            "headers": [(b"x-forwarded-for", b"1.2.3.4")],
            "client": ("9.9.9.9", 1234),
        }
        request = Request(scope)
        assert client_ip(request, trust_proxy=False) == "9.9.9.9"
        assert client_ip(request, trust_proxy=True) == "1.2.3.4"
