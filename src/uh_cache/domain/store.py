# src/uh_cache/domain/store.py
"""Key-value store Protocol — dependency inversion for testability.

Unit tests inject an in-memory double that conforms to this Protocol.
Infrastructure layer provides the Redis implementation.

Every data operation raises StoreUnavailable or StoreTimeout on failure;
ping() never raises.
"""

from typing import Protocol


class KeyValueStore(Protocol):
    @property
    def is_connected(self) -> bool: ...

    async def get(self, key: str) -> bytes | None: ...

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> int: ...

    async def delete_by_pattern(self, pattern: str) -> int: ...

    async def ping(self) -> bool: ...
