"""uh_user REST endpoints.

GET/HEAD /users            — list with cursor pagination (HTTP-cached: users:list)
GET    /users/{user_id}    — single user (entity-cached: users:user:{id})
POST   /users              — create
PUT    /users/{user_id}    — partial update
DELETE /users/{user_id}    — soft delete

Every mutation invalidates the user's entity key and flushes users:list
before its response is returned.
"""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.uh_cache.api.dependencies import get_cache_service
from src.uh_cache.application.service import CacheService
from src.uh_common.database import get_db_session
from src.uh_common.response import ApiResponse, success_response
from src.uh_gateway.middleware.response_cache import cache_response
from src.uh_user.application.schemas import CreateUserRequest, UpdateUserRequest
from src.uh_user.application.service import USER_LIST_NAMESPACE, UserApplicationService

router = APIRouter(prefix="/users", tags=["users"])

_service = UserApplicationService()


@router.api_route("", methods=["GET", "HEAD"])
@cache_response(namespace=USER_LIST_NAMESPACE, ttl=settings.USER_LIST_CACHE_TTL)
async def list_users(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    status_filter: int | None = Query(None, alias="status", ge=0, le=1),
    limit: int = Query(20, ge=1, le=100),
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
) -> ApiResponse:
    result = await _service.list_users(db, status_filter, cursor, limit)
    return success_response(result.model_dump(), "Users fetched successfully", request)


@router.get("/{user_id}")
async def get_user(
    user_id: uuid.UUID,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    cache: Annotated[CacheService | None, Depends(get_cache_service)],
) -> ApiResponse:
    result = await _service.get_user(db, str(user_id), cache)
    return success_response(result.model_dump(), "User fetched successfully", request)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    body: CreateUserRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    cache: Annotated[CacheService | None, Depends(get_cache_service)],
) -> ApiResponse:
    result = await _service.create_user(db, body, cache)
    return success_response(result.model_dump(), "User created successfully", request)


@router.put("/{user_id}")
async def update_user(
    user_id: uuid.UUID,
    body: UpdateUserRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    cache: Annotated[CacheService | None, Depends(get_cache_service)],
) -> ApiResponse:
    result = await _service.update_user(db, str(user_id), body, cache)
    return success_response(result.model_dump(), "User updated successfully", request)


@router.delete("/{user_id}")
async def delete_user(
    user_id: uuid.UUID,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    cache: Annotated[CacheService | None, Depends(get_cache_service)],
) -> ApiResponse:
    await _service.delete_user(db, str(user_id), cache)
    return success_response(None, "User deleted successfully", request)
