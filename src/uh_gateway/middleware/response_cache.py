"""Response caching for read routes (cache-aside + ETag).

Usage:
    @router.api_route("", methods=["GET", "HEAD"])
    @cache_response(namespace="users:list", ttl=120)
    async def list_users(request: Request, ...) -> ApiResponse:
        ...

Per request:
  1. Non-GET/HEAD → handler runs untouched.
  2. key = sha1("{namespace}:{identity}"), identity = key_fn(request) or
     path + sorted query string.
  3. Hit → 304 if If-None-Match weakly matches the stored ETag, else 200
     with the stored payload. Both carry ETag and X-Cache: HIT.
  4. Miss → run the handler, capture its return value, store {etag, payload}
     with the route TTL, reply with a weak ETag and X-Cache: MISS.
  5. Any cache-side error → logged, handler result served as-is.

Handler exceptions are never caught here and nothing is cached for them.
"""

import functools
import hashlib
import inspect
import json
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any
from urllib.parse import urlencode

from fastapi.encoders import jsonable_encoder
from starlette.requests import Request
from starlette.responses import Response

from src.uh_cache.application.service import CacheService
from src.uh_cache.domain.models import CacheEntry, CacheResult
from src.uh_common.errors import (
    CacheError,
    ConfigurationError,
    SerializationError,
    StoreTimeout,
    StoreUnavailable,
)

logger = logging.getLogger("uh.cache.http")

SAFE_METHODS = frozenset({"GET", "HEAD"})
DEFAULT_TTL = 60

ETAG_HEADER = "ETag"
CACHE_STATUS_HEADER = "X-Cache"
IF_NONE_MATCH_HEADER = "if-none-match"

KeyFn = Callable[[Request], str | None]
Endpoint = Callable[..., Awaitable[Any]]


class LookupPolicy(str, Enum):
    PROCEED_AS_MISS = "PROCEED_AS_MISS"                    # recompute, write back
    PROCEED_AS_MISS_NO_WRITE = "PROCEED_AS_MISS_NO_WRITE"  # recompute, store is down


# How a FAILED lookup is handled. Anything not listed proceeds as a plain miss.
LOOKUP_FAILURE_POLICY: dict[type[CacheError], LookupPolicy] = {
    StoreUnavailable: LookupPolicy.PROCEED_AS_MISS_NO_WRITE,
    StoreTimeout: LookupPolicy.PROCEED_AS_MISS_NO_WRITE,
    SerializationError: LookupPolicy.PROCEED_AS_MISS,  # corrupt entry gets overwritten
}


def policy_for(lookup: CacheResult) -> LookupPolicy:
    if not lookup.failed or lookup.error is None:
        return LookupPolicy.PROCEED_AS_MISS
    for error_type, policy in LOOKUP_FAILURE_POLICY.items():
        if isinstance(lookup.error, error_type):
            return policy
    return LookupPolicy.PROCEED_AS_MISS


def request_identity(request: Request) -> str:
    """Path plus query string with parameters sorted: ?b=2&a=1 ≡ ?a=1&b=2."""
    items = sorted(request.query_params.multi_items())
    if not items:
        return request.url.path
    return f"{request.url.path}?{urlencode(items)}"


def derive_cache_key(namespace: str, identity: str) -> str:
    return hashlib.sha1(f"{namespace}:{identity}".encode("utf-8")).hexdigest()


def render_json(payload: Any) -> bytes:
    """Same bytes starlette's JSONResponse would send."""
    return json.dumps(
        payload,
        ensure_ascii=False,
        allow_nan=False,
        indent=None,
        separators=(",", ":"),
    ).encode("utf-8")


def compute_etag(body: bytes) -> str:
    """Weak tag: GZipMiddleware may re-encode the bytes on the way out."""
    return f'W/"{hashlib.md5(body).hexdigest()}"'


def _opaque_tag(etag: str) -> str:
    if etag.startswith("W/"):
        etag = etag[2:]
    return etag.strip('"')


def etag_matches(if_none_match: str | None, etag: str) -> bool:
    """Weak comparison, as If-None-Match requires."""
    if not if_none_match:
        return False
    bare = _opaque_tag(etag)
    for candidate in if_none_match.split(","):
        candidate = candidate.strip()
        if candidate == "*":
            return True
        if _opaque_tag(candidate) == bare:
            return True
    return False


def _find_request_param(endpoint: Endpoint) -> str:
    for name, param in inspect.signature(endpoint).parameters.items():
        annotation = param.annotation
        if inspect.isclass(annotation) and issubclass(annotation, Request):
            return name
    raise ConfigurationError(
        f"{endpoint.__qualname__} must declare a `Request` parameter to be cached"
    )


class ResponseCache:
    def __init__(
        self,
        namespace: str,
        ttl: int = DEFAULT_TTL,
        key_fn: KeyFn | None = None,
    ) -> None:
        if not namespace or not namespace.strip():
            raise ConfigurationError("cache_response requires a namespace")
        if not isinstance(ttl, int) or ttl <= 0:
            raise ConfigurationError(f"cache_response ttl must be a positive int, got {ttl!r}")
        if key_fn is not None and not callable(key_fn):
            raise ConfigurationError("cache_response key_fn must be callable")
        self.namespace = namespace
        self.ttl = ttl
        self.key_fn = key_fn

    def cache_key(self, request: Request) -> str:
        identity = self.key_fn(request) if self.key_fn is not None else None
        return derive_cache_key(self.namespace, identity or request_identity(request))

    def __call__(self, endpoint: Endpoint) -> Endpoint:
        request_param = _find_request_param(endpoint)

        @functools.wraps(endpoint)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            request = kwargs.get(request_param)
            if not isinstance(request, Request) or request.method not in SAFE_METHODS:
                return await endpoint(*args, **kwargs)

            cache: CacheService | None = getattr(request.app.state, "cache", None)
            if cache is None:
                return await endpoint(*args, **kwargs)

            try:
                cache_key = self.cache_key(request)
                lookup = await cache.fetch(cache_key, self.namespace)
                if lookup.hit:
                    response = self._serve_hit(request, lookup)
                    if response is not None:
                        return response
                policy = policy_for(lookup)
            except Exception:
                logger.exception("Cache lookup error on %s; serving uncached", request.url.path)
                return await endpoint(*args, **kwargs)

            result = await endpoint(*args, **kwargs)
            return await self._capture(
                request,
                cache,
                cache_key,
                result,
                write=policy is LookupPolicy.PROCEED_AS_MISS,
            )

        return wrapper

    def _serve_hit(self, request: Request, lookup: CacheResult) -> Response | None:
        entry = CacheEntry.from_dict(lookup.value)
        if entry is None:
            logger.warning("Malformed cache entry for %s; recomputing", request.url.path)
            return None

        logger.debug("Cache hit: %s", request.url.path)
        headers = {ETAG_HEADER: entry.etag, CACHE_STATUS_HEADER: "HIT"}
        if etag_matches(request.headers.get(IF_NONE_MATCH_HEADER), entry.etag):
            return Response(status_code=304, headers=headers)
        return Response(
            content=render_json(entry.payload),
            status_code=200,
            media_type="application/json",
            headers=headers,
        )

    async def _capture(
        self,
        request: Request,
        cache: CacheService,
        cache_key: str,
        result: Any,
        write: bool,
    ) -> Any:
        # A handler that builds its own Response keeps full control of it.
        if isinstance(result, Response):
            return result
        try:
            payload = jsonable_encoder(result)
            body = render_json(payload)
            etag = compute_etag(body)
            if write:
                await cache.set(
                    cache_key,
                    CacheEntry(etag=etag, payload=payload).to_dict(),
                    self.ttl,
                    self.namespace,
                )
        except Exception:
            logger.exception("Failed to cache response for %s", request.url.path)
            return result

        return Response(
            content=body,
            status_code=200,
            media_type="application/json",
            headers={ETAG_HEADER: etag, CACHE_STATUS_HEADER: "MISS"},
        )


def cache_response(
    namespace: str,
    ttl: int = DEFAULT_TTL,
    key_fn: KeyFn | None = None,
) -> ResponseCache:
    """Decorator factory. Configuration errors surface when the route is declared."""
    return ResponseCache(namespace=namespace, ttl=ttl, key_fn=key_fn)
