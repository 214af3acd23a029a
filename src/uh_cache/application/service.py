"""CacheService — namespaced JSON cache on top of a KeyValueStore.

Keys are addressed as ``{namespace}:{key}``. Every operation is advisory and
returns a CacheResult instead of raising: under a total store outage the
callers simply recompute.

Log levels follow the cost of the failure:
  read / write failures   → WARNING (worst case: a recompute)
  delete / flush failures → ERROR   (worst case: stale data stays reachable)
"""

import json
import logging
from typing import Any

from src.uh_cache.domain.models import CacheResult
from src.uh_cache.domain.store import KeyValueStore
from src.uh_common.errors import CacheError, ConfigurationError, SerializationError

logger = logging.getLogger("uh.cache")

DEFAULT_NAMESPACE = "default"
DEFAULT_TTL = 300  # 5 minutes

_PATTERN_SPECIALS = "\\*?[]"


def full_key(key: str, namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}:{key}"


def namespace_pattern(namespace: str) -> str:
    """``users:list`` → ``users:list:*`` with glob metacharacters escaped."""
    escaped = "".join(f"\\{ch}" if ch in _PATTERN_SPECIALS else ch for ch in namespace)
    return f"{escaped}:*"


def encode_value(value: Any) -> bytes:
    try:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"value is not JSON-serializable: {exc}") from exc


def decode_value(raw: bytes) -> Any:
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, ValueError) as exc:
        raise SerializationError(f"cached bytes are not valid JSON: {exc}") from exc


class CacheService:
    def __init__(self, store: KeyValueStore, default_ttl: int = DEFAULT_TTL) -> None:
        if default_ttl <= 0:
            raise ConfigurationError(f"default_ttl must be positive, got {default_ttl}")
        self._store = store
        self._default_ttl = default_ttl

    @property
    def store(self) -> KeyValueStore:
        return self._store

    @property
    def default_ttl(self) -> int:
        return self._default_ttl

    async def fetch(self, key: str, namespace: str = DEFAULT_NAMESPACE) -> CacheResult:
        """HIT with the decoded value, MISS, or FAILED."""
        fk = full_key(key, namespace)
        try:
            raw = await self._store.get(fk)
            if raw is None:
                return CacheResult.missing()
            return CacheResult.found(decode_value(raw))
        except CacheError as exc:
            logger.warning("Cache get failed for %s: %s", fk, exc)
            return CacheResult.failure(exc)

    async def get(self, key: str, namespace: str = DEFAULT_NAMESPACE) -> Any | None:
        return (await self.fetch(key, namespace)).value

    async def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: int | None = None,
        namespace: str = DEFAULT_NAMESPACE,
    ) -> CacheResult:
        fk = full_key(key, namespace)
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        try:
            if ttl <= 0:
                raise ConfigurationError(f"ttl must be positive, got {ttl}")
            await self._store.set(fk, encode_value(value), ttl)
        except CacheError as exc:
            logger.warning("Cache set failed for %s: %s", fk, exc)
            return CacheResult.failure(exc)
        logger.debug("Cache set: %s (TTL %ss)", fk, ttl)
        return CacheResult.done()

    async def delete(self, key: str, namespace: str = DEFAULT_NAMESPACE) -> CacheResult:
        fk = full_key(key, namespace)
        try:
            removed = await self._store.delete(fk)
        except CacheError as exc:
            logger.error("Cache delete failed for %s: %s", fk, exc)
            return CacheResult.failure(exc)
        logger.debug("Cache deleted: %s", fk)
        return CacheResult.done(removed)

    async def flush_namespace(self, namespace: str) -> CacheResult:
        """Delete every key under ``namespace:*``. OK.value is the count flushed."""
        try:
            count = await self._store.delete_by_pattern(namespace_pattern(namespace))
        except CacheError as exc:
            logger.error("Cache flush failed for namespace %s: %s", namespace, exc)
            return CacheResult.failure(exc)
        if count:
            logger.info("Flushed %d keys from namespace: %s", count, namespace)
        else:
            logger.debug("No keys found for namespace: %s", namespace)
        return CacheResult.done(count)
