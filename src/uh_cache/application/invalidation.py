"""Cache invalidation after committed mutations.

Deletes the entity's own key and flushes every listing namespace in full.
A filtered or paginated listing cannot be matched to the entities it
contains, so whole-namespace flushes are the only safe option: deleting
too much costs a recompute, deleting too little serves stale data.

Callers must run invalidate() after the database commit and await it
before returning the mutation response.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from src.uh_cache.application.service import CacheService, full_key
from src.uh_common.errors import ConfigurationError

logger = logging.getLogger("uh.cache")


@dataclass
class InvalidationReport:
    entity_key: str
    entity_deleted: bool = False
    flushed: dict[str, int] = field(default_factory=dict)
    failures: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class CacheInvalidator:
    def __init__(
        self,
        cache: CacheService,
        namespace: str,
        entity_prefix: str,
        listing_namespaces: Sequence[str] = (),
    ) -> None:
        if not namespace or not entity_prefix:
            raise ConfigurationError("namespace and entity_prefix are required")
        self._cache = cache
        self._namespace = namespace
        self._entity_prefix = entity_prefix
        self._listing_namespaces = tuple(listing_namespaces)

    def entity_key(self, entity_id: object) -> str:
        """``user:{id}``, stored as ``{namespace}:user:{id}``."""
        return f"{self._entity_prefix}:{entity_id}"

    async def invalidate(self, entity_id: object) -> InvalidationReport:
        key = self.entity_key(entity_id)
        report = InvalidationReport(entity_key=full_key(key, self._namespace))

        result = await self._cache.delete(key, self._namespace)
        if result.failed:
            report.failures.append(report.entity_key)
        else:
            report.entity_deleted = bool(result.value)

        for namespace in self._listing_namespaces:
            result = await self._cache.flush_namespace(namespace)
            if result.failed:
                report.failures.append(f"{namespace}:*")
            else:
                report.flushed[namespace] = int(result.value or 0)

        if report.failures:
            logger.error(
                "Invalidation incomplete for %s; stale entries may remain until TTL: %s",
                report.entity_key,
                ", ".join(report.failures),
            )
        else:
            logger.debug("Invalidated %s (flushed %s)", report.entity_key, report.flushed)
        return report
