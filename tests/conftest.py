"""Shared test fixtures."""

import re
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from src.main import app
from src.uh_cache.application.service import CacheService
from src.uh_common.errors import StoreUnavailable
from src.uh_user.domain.models import User


def _redis_glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a Redis MATCH pattern (*, ?, [..], backslash escapes)."""
    out: list[str] = []
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\" and i + 1 < len(pattern):
            out.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if ch == "*":
            out.append(".*")
        elif ch == "?":
            out.append(".")
        elif ch == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                out.append(re.escape(ch))
            else:
                out.append(pattern[i:end + 1])
                i = end
        else:
            out.append(re.escape(ch))
        i += 1
    return re.compile("".join(out) + r"\Z", re.DOTALL)


class InMemoryStore:
    """KeyValueStore double. TTLs follow a manual clock: call advance()."""

    def __init__(self) -> None:
        self.data: dict[str, tuple[bytes, float]] = {}
        self.ttls: dict[str, int] = {}
        self.now = 0.0
        self.connected = True

    @property
    def is_connected(self) -> bool:
        return self.connected

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def _check(self, op: str) -> None:
        if not self.connected:
            raise StoreUnavailable(f"{op}: store not connected")

    def _purge(self) -> None:
        for key in [k for k, (_, exp) in self.data.items() if exp <= self.now]:
            del self.data[key]

    async def get(self, key: str) -> bytes | None:
        self._check("GET")
        self._purge()
        entry = self.data.get(key)
        return entry[0] if entry else None

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        self._check("SET")
        self.data[key] = (value, self.now + ttl_seconds)
        self.ttls[key] = ttl_seconds

    async def delete(self, key: str) -> int:
        self._check("DEL")
        self._purge()
        return 1 if self.data.pop(key, None) is not None else 0

    async def delete_by_pattern(self, pattern: str) -> int:
        self._check("SCAN")
        self._purge()
        regex = _redis_glob_to_regex(pattern)
        keys = [k for k in self.data if regex.match(k)]
        for k in keys:
            del self.data[k]
        return len(keys)

    async def ping(self) -> bool:
        return self.connected

    def keys(self) -> list[str]:
        self._purge()
        return sorted(self.data)


@pytest.fixture
async def client() -> AsyncClient:
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def memory_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def cache_service(memory_store: InMemoryStore) -> CacheService:
    return CacheService(memory_store, default_ttl=300)


def make_user(**overrides: Any) -> User:
    now = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)
    fields: dict[str, Any] = {
        "id": str(uuid.uuid4()),
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email": "ada@example.com",
        "mobile_no": "+15550001111",
        "password_hash": "$2b$12$fakehash",
        "status": 1,
        "created_at": now,
        "updated_at": now,
    }
    fields.update(overrides)
    return User(**fields)


class FakeUserRepository:
    """UserRepositoryProtocol double backed by a dict. Records every call."""

    def __init__(self) -> None:
        self.users: dict[str, User] = {}
        self.calls: list[str] = []
        self._clock = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)

    def add(self, user: User) -> User:
        self.users[user.id] = user
        return user

    def _live(self) -> list[User]:
        return [u for u in self.users.values() if u.deleted_at is None]

    async def list_users(self, db, status, cursor_ts, cursor_id, limit) -> list[User]:
        self.calls.append("list_users")
        users = sorted(self._live(), key=lambda u: (u.created_at, u.id), reverse=True)
        if status is not None:
            users = [u for u in users if u.status == status]
        if cursor_ts is not None and cursor_id is not None:
            bound = (datetime.fromisoformat(cursor_ts), cursor_id)
            users = [u for u in users if (u.created_at, u.id) < bound]
        return users[:limit]

    async def get_user_by_id(self, db, user_id: str) -> User | None:
        self.calls.append("get_user_by_id")
        user = self.users.get(user_id)
        return user if user is not None and user.deleted_at is None else None

    async def email_taken(self, db, email: str, exclude_id: str | None = None) -> bool:
        return any(u.email == email and u.id != exclude_id for u in self.users.values())

    async def mobile_taken(self, db, mobile_no: str, exclude_id: str | None = None) -> bool:
        return any(u.mobile_no == mobile_no and u.id != exclude_id for u in self.users.values())

    async def create_user(self, db, fields: dict[str, Any]) -> User:
        self.calls.append("create_user")
        self._clock += timedelta(seconds=1)
        user = User(
            id=str(uuid.uuid4()),
            first_name=fields["first_name"],
            last_name=fields.get("last_name"),
            email=fields["email"],
            mobile_no=fields.get("mobile_no"),
            password_hash=fields["password_hash"],
            status=fields.get("status", 1),
            created_at=self._clock,
            updated_at=self._clock,
        )
        return self.add(user)

    async def update_user(self, db, user_id: str, changes: dict[str, Any]) -> User | None:
        self.calls.append("update_user")
        user = await self.get_user_by_id(db, user_id)
        if user is None:
            return None
        for name, value in changes.items():
            setattr(user, name, value)
        return user

    async def soft_delete_user(self, db, user_id: str) -> bool:
        self.calls.append("soft_delete_user")
        user = await self.get_user_by_id(db, user_id)
        if user is None:
            return False
        user.deleted_at = datetime.now(UTC)
        return True


@pytest.fixture
def fake_repo() -> FakeUserRepository:
    return FakeUserRepository()


@pytest.fixture
def mock_db() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def user_factory():
    return make_user
