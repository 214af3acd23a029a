"""Health API router.

GET /health — database and Redis status; 503 when either is down.

The Redis check goes through RedisStore.ping(), which also marks a store
that was unreachable at startup as connected again once Redis answers.
"""

import time

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.uh_common.database import get_db_session
from src.uh_common.response import success_response

router = APIRouter(prefix="/health", tags=["health"])

_STARTED_AT = time.monotonic()


@router.get("")
async def health(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> JSONResponse:
    services: dict[str, dict[str, str]] = {}

    try:
        await db.execute(text("SELECT 1"))
        services["database"] = {"status": "up", "message": "Database connection OK"}
    except (SQLAlchemyError, OSError) as exc:
        services["database"] = {"status": "down", "message": str(exc)}

    store = getattr(request.app.state, "store", None)
    if store is None:
        services["redis"] = {"status": "down", "message": "Redis client not configured"}
    elif await store.ping():
        services["redis"] = {"status": "up", "message": "Redis connection OK"}
    else:
        services["redis"] = {"status": "down", "message": "Redis client not connected"}

    healthy = all(s["status"] == "up" for s in services.values())
    resp = success_response(
        {
            "app": settings.APP_NAME,
            "environment": settings.APP_ENV,
            "version": "v1",
            "uptime_seconds": round(time.monotonic() - _STARTED_AT, 1),
            "services": services,
        },
        "healthy" if healthy else "degraded",
        request,
    )
    return JSONResponse(status_code=200 if healthy else 503, content=resp.model_dump())
