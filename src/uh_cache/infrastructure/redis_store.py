"""RedisStore — concrete implementation of KeyValueStore.

Wraps an injected redis.asyncio client. The owning process drives the
lifecycle: connect() once at startup, close() at shutdown.

Error mapping (redis-py → cache layer):
  TimeoutError                      → StoreTimeout
  ConnectionError / other RedisError → StoreUnavailable
  not connected                      → one throttled ping, then StoreUnavailable
  closed                             → StoreUnavailable, without touching Redis

No retries here: the client's socket timeouts bound every call. A store that
lost Redis pings it again at most once per reconnect_interval, so it comes back
on its own once Redis does.
"""

import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from src.uh_common.errors import StoreTimeout, StoreUnavailable

logger = logging.getLogger("uh.cache.store")

_SCAN_BATCH = 500
RECONNECT_INTERVAL = 5.0  # seconds between reconnect pings while disconnected


class RedisStore:
    def __init__(
        self,
        client: aioredis.Redis,
        reconnect_interval: float = RECONNECT_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._connected = False
        self._closed = False
        self._reconnect_interval = reconnect_interval
        self._clock = clock
        self._last_ping: float | None = None

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> bool:
        """Verify the connection. Failure is logged, not raised.

        A store that fails here stays usable later: the next operation after
        reconnect_interval pings Redis again and resumes once it answers.
        """
        self._connected = await self.ping()
        if self._connected:
            logger.info("Redis connection established")
        else:
            logger.error("Redis unreachable at startup; cache runs degraded until it recovers")
        return self._connected

    async def close(self) -> None:
        self._connected = False
        self._closed = True
        await self._client.aclose()
        logger.info("Redis connection closed")

    async def ping(self) -> bool:
        self._last_ping = self._clock()
        try:
            ok = bool(await self._client.ping())
        except (RedisError, OSError, TimeoutError) as exc:
            logger.warning("Redis ping failed: %s", exc)
            ok = False
        self._connected = ok
        return ok

    def _reconnect_due(self) -> bool:
        if self._last_ping is None:
            return True
        return self._clock() - self._last_ping >= self._reconnect_interval

    async def _ensure_connected(self, op: str, key: str) -> None:
        if self._connected:
            return
        if not self._closed and self._reconnect_due() and await self.ping():
            logger.info("Redis connection re-established")
            return
        raise StoreUnavailable(f"{op} {key!r}: Redis client not connected")

    @contextmanager
    def _translate_errors(self, op: str, key: str) -> Iterator[None]:
        try:
            yield
        except (RedisTimeoutError, TimeoutError) as exc:
            raise StoreTimeout(f"{op} {key!r} timed out: {exc}") from exc
        except (RedisConnectionError, OSError) as exc:
            # Lost connection: later calls wait for the next reconnect ping
            self._connected = False
            raise StoreUnavailable(f"{op} {key!r} failed: {exc}") from exc
        except RedisError as exc:
            raise StoreUnavailable(f"{op} {key!r} failed: {exc}") from exc

    async def get(self, key: str) -> bytes | None:
        await self._ensure_connected("GET", key)
        with self._translate_errors("GET", key):
            data = await self._client.get(key)
        if isinstance(data, str):
            return data.encode("utf-8")
        return data

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        await self._ensure_connected("SET", key)
        with self._translate_errors("SET", key):
            await self._client.set(key, value, ex=ttl_seconds)

    async def delete(self, key: str) -> int:
        await self._ensure_connected("DEL", key)
        with self._translate_errors("DEL", key):
            return int(await self._client.delete(key))

    async def delete_by_pattern(self, pattern: str) -> int:
        """SCAN for every key matching ``pattern``, then DEL them in one batch."""
        await self._ensure_connected("SCAN", pattern)
        with self._translate_errors("SCAN", pattern):
            keys = [key async for key in self._client.scan_iter(match=pattern, count=_SCAN_BATCH)]
        if not keys:
            return 0
        with self._translate_errors("DEL", pattern):
            return int(await self._client.delete(*keys))
