"""Global exception handlers — every error leaves as an ApiResponse envelope.

  AppError                → its own code / http_status
  RequestValidationError  → 9003, 422, messages grouped by request section
  HTTPException           → 9000 with the exception's status (404 → 9004)
  anything else           → 9002, 500; traceback logged, detail only in DEBUG
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config.settings import settings
from src.uh_common.errors import (
    AppError,
    InternalError,
    RequestValidationFailed,
    RouteNotFoundError,
)
from src.uh_common.response import error_response

logger = logging.getLogger("uh.app")


def _render(request: Request, exc: AppError, headers: dict[str, str] | None = None) -> JSONResponse:
    resp = error_response(exc.code, exc.message, request)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
        headers=headers,
    )


def format_validation_errors(errors: list[dict]) -> str:
    """Collapse pydantic error dicts into one readable line.

    [{"loc": ("body", "email"), "msg": "..."}] → "Validation error in body: email: ..."
    """
    by_section: dict[str, list[str]] = {}
    for err in errors:
        loc = list(err.get("loc", ()))
        section = str(loc.pop(0)) if loc else "request"
        field = ".".join(str(part) for part in loc)
        msg = err.get("msg", "invalid value")
        by_section.setdefault(section, []).append(f"{field}: {msg}" if field else msg)
    return "; ".join(
        f"Validation error in {section}: {', '.join(msgs)}"
        for section, msgs in by_section.items()
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("[%d] %s (%s %s)", exc.http_status, exc.message, request.method, request.url.path)
    else:
        logger.warning("[%d] %s (%s %s)", exc.http_status, exc.message, request.method, request.url.path)
    return _render(request, exc)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    err = RequestValidationFailed(format_validation_errors(list(exc.errors())))
    logger.warning("[422] %s (%s %s)", err.message, request.method, request.url.path)
    return _render(request, err)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        err: AppError = RouteNotFoundError(request.url.path)
    else:
        err = AppError(9000, str(exc.detail), exc.status_code)
    logger.warning("[%d] %s (%s %s)", err.http_status, err.message, request.method, request.url.path)
    return _render(request, err, headers=getattr(exc, "headers", None))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    detail = f"Internal server error: {exc}" if settings.DEBUG else "Internal server error"
    return _render(request, InternalError(detail))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_error_handler)
