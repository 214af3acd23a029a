"""Request logging middleware.

Logs every HTTP request with method, path, status code, latency, the
request ID and, on cached routes, the cache marker. The request ID comes
from an incoming X-Request-ID header when present, is injected into
request.state for handlers, and is echoed back on the response.

Log format:
    INFO [GET] /api/v1/users → 200 (4ms) req_a1b2c3d4e5f6 cache=HIT
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("uh.request")

REQUEST_ID_HEADER = "X-Request-ID"
_MAX_REQUEST_ID_LEN = 128


def _incoming_request_id(request: Request) -> str | None:
    value = request.headers.get(REQUEST_ID_HEADER)
    if value and len(value) <= _MAX_REQUEST_ID_LEN and value.isprintable():
        return value
    return None


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.request_id = _incoming_request_id(request) or f"req_{uuid.uuid4().hex[:12]}"

        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        response.headers[REQUEST_ID_HEADER] = request.state.request_id
        cache_status = response.headers.get("X-Cache")
        logger.info(
            "[%s] %s → %d (%.0fms) %s%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request.state.request_id,
            f" cache={cache_status}" if cache_status else "",
        )
        return response
