"""Domain models for uh_cache — pure dataclasses, no I/O."""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from src.uh_common.errors import CacheError


class CacheStatus(str, Enum):
    HIT = "HIT"
    MISS = "MISS"
    OK = "OK"          # write / delete / flush completed
    FAILED = "FAILED"  # store or serialization failure; caller proceeds without cache


@dataclass(frozen=True)
class CacheResult:
    """Outcome of a single CacheService operation.

    Cache operations never raise; callers branch on ``status`` instead.
    """

    status: CacheStatus
    value: Any = None
    error: CacheError | None = None

    @property
    def hit(self) -> bool:
        return self.status is CacheStatus.HIT

    @property
    def failed(self) -> bool:
        return self.status is CacheStatus.FAILED

    @classmethod
    def found(cls, value: Any) -> "CacheResult":
        return cls(CacheStatus.HIT, value)

    @classmethod
    def missing(cls) -> "CacheResult":
        return cls(CacheStatus.MISS)

    @classmethod
    def done(cls, value: Any = None) -> "CacheResult":
        return cls(CacheStatus.OK, value)

    @classmethod
    def failure(cls, error: CacheError) -> "CacheResult":
        return cls(CacheStatus.FAILED, error=error)


@dataclass(frozen=True)
class CacheEntry:
    """A cached HTTP payload together with its entity tag."""

    etag: str
    payload: Any

    def to_dict(self) -> dict[str, Any]:
        return {"etag": self.etag, "payload": self.payload}

    @classmethod
    def from_dict(cls, data: Any) -> "CacheEntry | None":
        """Rebuild an entry; returns None for anything not shaped like one."""
        if not isinstance(data, dict) or "payload" not in data:
            return None
        etag = data.get("etag")
        if not isinstance(etag, str) or not etag:
            return None
        return cls(etag=etag, payload=data["payload"])
